"""Application errors raised by the local action layer."""

from typing import Dict, Optional


class ValidationError(ValueError):
    """User input rejected before reaching the store.

    ``errors`` maps field names to messages so callers can show them
    next to the offending field.
    """

    def __init__(self, errors: Dict[str, str], message: Optional[str] = None):
        self.errors = dict(errors)
        super().__init__(message or "; ".join(f"{k}: {v}" for k, v in self.errors.items()))


class AuthenticationError(Exception):
    """Username and password did not match a registered user."""


class NotFoundError(LookupError):
    """Requested post does not exist in the local store."""

    def __init__(self, post_id: int):
        self.post_id = post_id
        super().__init__(f"Post {post_id} not found")
