"""
Feed assembly error taxonomy.

  FetchError       one category's upstream call failed (or exhausted retries).
                   Recovered inside the blender; never reaches the client.
  FetchCancelled   the request's cancel signal fired. Never retried and never
                   reported as a FetchError.
  FeedUnavailable  every category and the fallback failed. The only error
                   surfaced to the UI, as a retryable 503.
"""
from typing import Optional


class FeedError(Exception):
    """Base class for feed assembly errors."""


class FetchError(FeedError):
    def __init__(self, interest: str, message: str, attempts: int = 1) -> None:
        super().__init__(f"{interest}: {message}")
        self.interest = interest
        self.message = message
        self.attempts = attempts


class FetchCancelled(FeedError):
    def __init__(self, interest: Optional[str] = None) -> None:
        super().__init__(f"fetch cancelled ({interest})" if interest else "fetch cancelled")
        self.interest = interest


class FeedUnavailable(FeedError):
    retryable = True

    def __init__(self, interest: str, message: str = "content source unavailable") -> None:
        super().__init__(f"feed unavailable for {interest}: {message}")
        self.interest = interest
        self.message = message
