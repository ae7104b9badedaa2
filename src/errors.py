"""Digger exception hierarchy.

Lock contention is not an error: ``LockCoordinator.acquire`` returns False.
"""


class DiggerError(Exception):
    """Base exception for all Digger errors."""

    pass


class ConfigurationError(DiggerError):
    """Raised when digger.yml or the CI context cannot be used."""

    pass


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


class PolicyTransportError(DiggerError):
    """Raised when the policy host cannot be reached or read."""

    pass


class CIServiceError(DiggerError):
    """Raised when the CI / source-control API call fails."""

    pass


class UnexpectedStatusError(DiggerError):
    """Raised when a policy fetch returns neither 200 nor 404."""

    def __init__(self, message: str, status_code: int, body: str = ""):
        super().__init__(f"{message}: {body!r} code {status_code}")
        self.status_code = status_code
        self.body = body


# ---------------------------------------------------------------------------
# Policy evaluation
# ---------------------------------------------------------------------------


class PolicyEvaluationError(DiggerError):
    """Raised when the policy engine fails to prepare or evaluate a policy."""

    pass


class DecisionError(PolicyEvaluationError):
    """Raised when evaluation succeeded but produced no usable decision."""

    pass


class NoDecisionError(DecisionError):
    """Raised when the decision rule yields no result."""

    pass


class MalformedDecisionError(DecisionError):
    """Raised when the decision rule yields a non-boolean value."""

    pass


# ---------------------------------------------------------------------------
# Routing / execution
# ---------------------------------------------------------------------------


class UnsupportedEventError(DiggerError):
    """Raised when an event type has no routing rule."""

    pass


class ExecutionError(DiggerError):
    """Raised when the IaC executor fails for a single command."""

    def __init__(self, message: str, output: str = ""):
        super().__init__(message)
        self.output = output
