from dataclasses import dataclass


@dataclass(frozen=True)
class GateIssue:
    field: str
    message: str

    def as_dict(self) -> dict:
        return {"field": self.field, "message": self.message}


class PortalError(Exception):
    """Base class for every failure the portal reports to a caller."""


class Unauthenticated(PortalError):
    pass


class UnknownField(PortalError):
    def __init__(self, names: list[str]):
        self.names = sorted(names)
        super().__init__(f"Unknown field(s): {', '.join(self.names)}")


class SubmissionRejected(PortalError):
    def __init__(self, issues: list[GateIssue]):
        self.issues = list(issues)
        super().__init__("Application is not ready to submit")


class TransitionRejected(PortalError):
    pass


class ApplicationNotFound(PortalError):
    pass


class ApplicationConflict(PortalError):
    """Uniqueness violation on owner_id; retrying get-or-create resolves it."""


class StorageFailure(PortalError):
    pass
