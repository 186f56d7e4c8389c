"""
Error taxonomy for the password reset flow.

- ResetValidationError: local, raised before any external call.
- IdentityServiceError: an external call failed (bad code, network, service).
- FlowStateError: an action was attempted on a step that is not current.
"""

from typing import Optional


class ResetFlowError(Exception):
    """Base error for the password reset flow."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ResetValidationError(ResetFlowError):
    pass


class IdentityServiceError(ResetFlowError):
    def __init__(self, message: str = "", status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class FlowStateError(ResetFlowError):
    pass
