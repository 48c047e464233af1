import enum

class TreatmentType(str, enum.Enum):
    FKT = "fkt"
    ATM = "atm"
    DRENAJE = "drenaje"
    DRENAJE_ULTRA = "drenaje_ultra"
    MASAJE = "masaje"
    VESTIBULAR = "vestibular"
    OTRO = "otro"

# These claim the whole time block for the practitioner.
EXCLUSIVE_TREATMENTS = frozenset({TreatmentType.DRENAJE, TreatmentType.DRENAJE_ULTRA, TreatmentType.MASAJE})

def is_exclusive(treatment: str | TreatmentType | None) -> bool:
    if treatment is None:
        return False
    try:
        return TreatmentType(str(getattr(treatment, "value", treatment)).lower()) in EXCLUSIVE_TREATMENTS
    except ValueError:
        return False
