# server/core/exceptions.py
"""
Custom exceptions for the backend
"""
from typing import Optional

class AgriSphereError(Exception):
    """Base exception for the AgriSphere backend"""
    pass

class AgentError(AgriSphereError):
    """Agent-related errors"""
    pass

class AgentConfigError(AgriSphereError):
    """Agent configuration errors"""
    pass

class InputValidationError(AgriSphereError):
    """Bad caller input, never retried"""
    pass

class CalculationError(AgriSphereError):
    """Invalid derived state in the water balance pipeline"""
    pass

class AuthError(AgriSphereError):
    """Token acquisition against the upstream provider failed"""
    pass

class RateLimitError(AgriSphereError):
    """Upstream call budget for the current window is exhausted"""

    def __init__(self, retry_after: float):
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded. Please wait {retry_after:.0f} seconds.")

class ExternalAPIError(AgriSphereError):
    """External API errors

    ``status_code`` is None for network failures and timeouts.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        if self.status_code is None:
            return True
        return self.status_code == 429 or self.status_code >= 500

class UpstreamUnavailableError(AgriSphereError):
    """No usable data could be produced for a request"""
    pass
