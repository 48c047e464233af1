class FrontdeskError(Exception):
    """Base class for errors the routers translate into HTTP responses."""


class NotFound(FrontdeskError):
    pass


class ValidationFailed(FrontdeskError):
    pass


class InvalidStatusTransition(FrontdeskError):
    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot move appointment from '{current}' to '{requested}'")
        self.current = current
        self.requested = requested


class AdmissionRejected(FrontdeskError):
    """The admission decision refused the candidate; `reason` is user-facing."""

    code = "admission_rejected"

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class SlotTakenConcurrently(AdmissionRejected):
    """Another session committed the same slot between our checks and our write.

    Raised only after admission was re-run against the committed state, so
    `reason` reflects what the store holds now.
    """

    code = "slot_taken_concurrently"
