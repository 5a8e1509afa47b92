"""
Error taxonomy for the digest pipeline
"""


class DigestError(Exception):
    """Base class for all pipeline errors"""


class FetchError(DigestError):
    """Listing page unreachable, non-2xx or no usable articles"""


class RateLimitExceeded(DigestError):
    """A rate limit category is exhausted for the current window"""

    def __init__(self, category: str, message: str = None):
        self.category = category
        super().__init__(message or f"Rate limit exceeded for '{category}'")


class SummarizationError(DigestError):
    """The model call failed or returned an unusable payload"""


class EmailServiceError(DigestError):
    """The mail transport could not be verified or there is no one to send to"""


class ScheduleError(DigestError, ValueError):
    """Invalid schedule configuration"""


class StorageError(DigestError):
    """Base class for repository errors"""


class NotFoundError(StorageError, LookupError):
    pass


class InvalidStatusTransition(StorageError):
    pass
