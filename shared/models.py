"""Shared data models for the posts application."""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")


@dataclass
class Post:
    """Represents a post, either fetched from the API or created locally."""
    id: int
    user_id: int
    title: str
    body: str
    is_favorite: bool = False

    @classmethod
    def from_api(cls, data: dict) -> "Post":
        """
        Build a Post from the API representation {id, userId, title, body}.

        Raises:
            KeyError, TypeError, ValueError: If a field is missing or mistyped
        """
        if not isinstance(data, dict):
            raise TypeError(f"Expected JSON object, got {type(data).__name__}")

        post_id = data["id"]
        user_id = data["userId"]
        title = data["title"]
        body = data["body"]

        if not isinstance(post_id, int) or isinstance(post_id, bool):
            raise ValueError(f"Field 'id' is not an integer: {post_id!r}")
        if not isinstance(user_id, int) or isinstance(user_id, bool):
            raise ValueError(f"Field 'userId' is not an integer: {user_id!r}")
        if not isinstance(title, str) or not isinstance(body, str):
            raise ValueError("Fields 'title' and 'body' must be strings")

        # Fetched posts are never favorites until marked locally
        return cls(id=post_id, user_id=user_id, title=title, body=body, is_favorite=False)


@dataclass
class User:
    """Represents a locally registered user."""
    id: int
    username: str


class ApiErrorKind(str, Enum):
    """Classification of remote API failures."""
    NETWORK = "network"
    HTTP_STATUS = "http_status"
    PARSE = "parse"


@dataclass
class ApiError:
    """A failed remote API call."""
    kind: ApiErrorKind
    message: str
    status_code: Optional[int] = None


@dataclass
class ApiResult(Generic[T]):
    """Outcome of a remote API call: either a value or an ApiError."""
    value: Optional[T] = None
    error: Optional[ApiError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "ApiResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ApiErrorKind, message: str, status_code: Optional[int] = None) -> "ApiResult[T]":
        return cls(error=ApiError(kind=kind, message=message, status_code=status_code))


class PostSource(str, Enum):
    """Where a list of posts came from."""
    REMOTE = "remote"
    LOCAL = "local"


@dataclass
class SyncResult:
    """Result of a load or refresh request."""
    posts: List[Post]
    source: PostSource
    offline: bool
    notice: Optional[str] = None
    error: Optional[ApiError] = None
