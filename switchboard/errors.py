from typing import Optional


class SwitchboardError(Exception):
    """Base class for routing-core errors."""


class ConfigurationError(SwitchboardError):
    """Invalid persona, routing table or flow script; rejected before any state changes."""


class ServiceUnavailable(SwitchboardError):
    """Completion provider is not configured."""


class ProviderError(SwitchboardError):
    """Completion provider call failed (transport, auth, rate limit, timeout)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class UnknownStepReference(SwitchboardError):
    def __init__(self, step_id: str):
        self.step_id = step_id
        super().__init__(f"Unknown flow step: {step_id!r}")


class InvalidTransition(SwitchboardError):
    def __init__(self, expected_step: Optional[str], submitted_step: str):
        self.expected_step = expected_step
        self.submitted_step = submitted_step
        super().__init__(f"Invalid transition: waiting on {expected_step!r}, got {submitted_step!r}")
