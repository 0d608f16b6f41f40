"""Workflow error kinds.

Every failure the engine reports to a caller is one of these. Each carries a
stable ``code`` so API clients can branch on it, and an HTTP status used by
the exception handler in ``civicflow.main``.
"""


class WorkflowError(Exception):
    """Base class for all reportable workflow failures."""

    code = "workflow_error"
    status_code = 400

    def __init__(self, detail: str, *, rule: str | None = None):
        super().__init__(detail)
        self.detail = detail
        self.rule = rule

    def to_dict(self) -> dict:
        """Serialize for API responses."""
        return {"code": self.code, "detail": self.detail, "rule": self.rule}


class Unauthorized(WorkflowError):
    """Access control denied the requested transition."""

    code = "unauthorized"
    status_code = 403

    def __init__(self, rule: str, detail: str | None = None):
        super().__init__(detail or f"Action denied by rule '{rule}'", rule=rule)


class InvalidTransition(WorkflowError):
    """The target entity is not in a state from which the transition is legal."""

    code = "invalid_transition"
    status_code = 409


class ConflictingState(WorkflowError):
    """A concurrent write won the race for the same entity."""

    code = "conflicting_state"
    status_code = 409


class ReferentialViolation(WorkflowError):
    """A referenced actor, area, department or entity is missing or inactive."""

    code = "referential_violation"
    status_code = 404


class ValidationError(WorkflowError):
    """A field constraint was violated."""

    code = "validation_error"
    status_code = 422
