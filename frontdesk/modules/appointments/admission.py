"""
Admission decision for a prospective appointment.

Four independent reads decide whether a candidate may be written:

    1. exceptions    - clinic closures, holidays and practitioner blocks
    2. availability  - the practitioner's weekly schedule
    3. exclusivity   - exclusive treatments own the whole time block
    4. slot          - the exact sub-slot is free

All four are issued at once; only the reporting follows the order above, so
the first failing check in that order supplies the reason. None of this is
transactional: the partial unique index on the appointment table is what
actually prevents double booking.

When a read fails the outcome is looked up in FAILURE_POLICY instead of being
decided by each check.
"""
import uuid
import enum
import asyncio
import logging
from dataclasses import dataclass, field

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from frontdesk.core.config import settings
from frontdesk.modules.appointments.conflicts import Candidate, ConflictChecker
from frontdesk.modules.availability.service import AvailabilityService
from frontdesk.modules.exceptions.resolver import ExceptionResolvers

log = logging.getLogger(__name__)


class CheckName(str, enum.Enum):
    EXCEPTIONS = "exceptions"
    AVAILABILITY = "availability"
    EXCLUSIVITY = "exclusivity"
    SLOT = "slot"


# reporting priority
CHECK_ORDER = (CheckName.EXCEPTIONS, CheckName.AVAILABILITY, CheckName.EXCLUSIVITY, CheckName.SLOT)


class FailureClass(str, enum.Enum):
    INFRASTRUCTURE = "infrastructure"
    TIMEOUT = "timeout"


class Policy(str, enum.Enum):
    FAIL_OPEN = "fail_open"
    FAIL_CLOSED = "fail_closed"


FAILURE_POLICY: dict[tuple[CheckName, FailureClass], Policy] = {
    (CheckName.EXCEPTIONS, FailureClass.INFRASTRUCTURE): Policy.FAIL_OPEN,
    (CheckName.EXCEPTIONS, FailureClass.TIMEOUT): Policy.FAIL_OPEN,
    (CheckName.AVAILABILITY, FailureClass.INFRASTRUCTURE): Policy.FAIL_OPEN,
    (CheckName.AVAILABILITY, FailureClass.TIMEOUT): Policy.FAIL_OPEN,
    (CheckName.EXCLUSIVITY, FailureClass.INFRASTRUCTURE): Policy.FAIL_OPEN,
    (CheckName.EXCLUSIVITY, FailureClass.TIMEOUT): Policy.FAIL_OPEN,
    (CheckName.SLOT, FailureClass.INFRASTRUCTURE): Policy.FAIL_OPEN,
    (CheckName.SLOT, FailureClass.TIMEOUT): Policy.FAIL_OPEN,
}

CHECK_LABELS_ES = {
    CheckName.EXCEPTIONS: "excepciones y feriados",
    CheckName.AVAILABILITY: "la disponibilidad del profesional",
    CheckName.EXCLUSIVITY: "tratamientos exclusivos",
    CheckName.SLOT: "la ocupación del sub-turno",
}


def classify_failure(exc: BaseException) -> FailureClass | None:
    # TimeoutError subclasses OSError, so test it first
    if isinstance(exc, asyncio.TimeoutError):
        return FailureClass.TIMEOUT
    if isinstance(exc, (SQLAlchemyError, OSError)):
        return FailureClass.INFRASTRUCTURE
    return None


@dataclass(frozen=True)
class CheckOutcome:
    name: CheckName
    passed: bool
    reason: str | None = None
    failure: FailureClass | None = None


@dataclass
class AdmissionDecision:
    admitted: bool
    reason: str | None = None
    warnings: list[str] = field(default_factory=list)
    rejected_by: CheckName | None = None


class AdmissionService:
    def __init__(self, session_factory: async_sessionmaker, resolvers: ExceptionResolvers, timeout_seconds: float | None = None):
        self.session_factory = session_factory
        self.resolvers = resolvers
        self.timeout_seconds = timeout_seconds or settings.ADMISSION_CHECK_TIMEOUT_SECONDS

    async def decide(self, candidate: Candidate, exclude_id: uuid.UUID | None = None) -> AdmissionDecision:
        exclude_id = exclude_id or candidate.id
        checks = {
            CheckName.EXCEPTIONS: self.check_exceptions(candidate),
            CheckName.AVAILABILITY: self.check_availability(candidate),
            CheckName.EXCLUSIVITY: self.check_exclusivity(candidate, exclude_id),
            CheckName.SLOT: self.check_slot(candidate, exclude_id),
        }
        outcomes = await asyncio.gather(*(self._run(name, checks[name]) for name in CHECK_ORDER), return_exceptions=True)
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome

        warnings: list[str] = []
        for outcome in outcomes:
            if outcome.failure is not None:
                label = CHECK_LABELS_ES[outcome.name]
                if FAILURE_POLICY[(outcome.name, outcome.failure)] == Policy.FAIL_CLOSED:
                    return AdmissionDecision(
                        admitted=False,
                        reason=f"No se pudo verificar {label}; intente nuevamente",
                        warnings=warnings,
                        rejected_by=outcome.name,
                    )
                warnings.append(f"No se pudo verificar {label}; la reserva se permite igualmente")
                continue
            if not outcome.passed:
                return AdmissionDecision(admitted=False, reason=outcome.reason, warnings=warnings, rejected_by=outcome.name)
        return AdmissionDecision(admitted=True, warnings=warnings)

    async def _run(self, name: CheckName, check) -> CheckOutcome:
        try:
            return await asyncio.wait_for(check, timeout=self.timeout_seconds)
        except Exception as exc:
            failure = classify_failure(exc)
            if failure is None:
                raise
            log.warning(f"Admission check '{name.value}' failed ({failure.value}): {exc!r}")
            return CheckOutcome(name=name, passed=True, failure=failure)

    # ---- Individual checks ----
    async def check_exceptions(self, c: Candidate) -> CheckOutcome:
        res = await self.resolvers.is_blocked(c.clinic_id, c.date, c.start_time, c.practitioner_id)
        return CheckOutcome(CheckName.EXCEPTIONS, passed=not res.blocked, reason=res.reason)

    async def check_availability(self, c: Candidate) -> CheckOutcome:
        async with self.session_factory() as session:
            res = await AvailabilityService(session).is_available(c.practitioner_id, c.clinic_id, c.date, c.start_time)
        # unconfigured schedules never reject
        passed = res.available or not res.configured
        return CheckOutcome(CheckName.AVAILABILITY, passed=passed, reason=None if passed else res.message)

    async def check_exclusivity(self, c: Candidate, exclude_id: uuid.UUID | None) -> CheckOutcome:
        async with self.session_factory() as session:
            res = await ConflictChecker(session).check_exclusive(c, exclude_id)
        if res.ok:
            return CheckOutcome(CheckName.EXCLUSIVITY, passed=True)
        conflict = res.conflict
        return CheckOutcome(
            CheckName.EXCLUSIVITY,
            passed=False,
            reason=f"Conflicto con tratamiento exclusivo: ya hay una cita de {conflict.treatment_type} "
                   f"a las {conflict.start_time} (cita {conflict.appointment_id})",
        )

    async def check_slot(self, c: Candidate, exclude_id: uuid.UUID | None) -> CheckOutcome:
        async with self.session_factory() as session:
            taken = await ConflictChecker(session).is_slot_taken(
                c.clinic_id, c.practitioner_id, c.date, c.start_time, c.sub_slot, exclude_id=exclude_id,
            )
        if not taken:
            return CheckOutcome(CheckName.SLOT, passed=True)
        return CheckOutcome(CheckName.SLOT, passed=False, reason=f"El sub-turno {c.sub_slot} de las {c.start_time} ya está ocupado")


def get_admission(request: Request) -> AdmissionService:
    return request.app.state.admission
