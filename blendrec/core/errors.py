"""
Blendrec Errors
Exceptions raised by collaborator adapters
"""

from typing import Optional


class RecommendationError(Exception):
    """Base class for blendrec errors"""


class ProviderError(RecommendationError):
    """An external collaborator call failed"""

    def __init__(self, message: str, code: str = "PROVIDER_ERROR"):
        super().__init__(message)
        self.code = code


class ProviderUnavailable(ProviderError):
    """Collaborator is backing off after a rate limit or server error"""

    def __init__(self, message: str, retry_after_sec: Optional[float] = None):
        super().__init__(message, code="SERVICE_UNAVAILABLE")
        self.retry_after_sec = retry_after_sec
