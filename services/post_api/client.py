"""HTTP client for the remote posts API."""

import asyncio
import logging
from typing import Any, Callable, List, Optional, TypeVar

import httpx

from shared.config import get_posts_api_config
from shared.models import ApiErrorKind, ApiResult, Post

logger = logging.getLogger(__name__)

T = TypeVar("T")

POSTS_ENDPOINT = "/posts"


class PostApiClient:
    """Fetches posts from the remote API.

    Requests are serialized: one is in flight at a time and later calls
    wait their turn. Failures never raise; they come back as an
    ``ApiResult`` carrying an ``ApiError``.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        connect_timeout: Optional[float] = None,
        read_timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the posts API client.

        Args:
            base_url: API base URL (defaults to POSTS_API_BASE_URL)
            connect_timeout: Seconds allowed to establish a connection
            read_timeout: Seconds allowed between bytes of the response
            transport: Optional httpx transport, used by tests
        """
        config = get_posts_api_config()
        self.base_url = base_url or config["base_url"]
        self.connect_timeout = connect_timeout if connect_timeout is not None else config["connect_timeout"]
        self.read_timeout = read_timeout if read_timeout is not None else config["read_timeout"]

        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Accept": "application/json"},
            timeout=httpx.Timeout(
                connect=self.connect_timeout,
                read=self.read_timeout,
                write=self.read_timeout,
                pool=self.connect_timeout
            ),
            transport=transport
        )
        self._lock = asyncio.Lock()

    async def fetch_posts(self) -> ApiResult[List[Post]]:
        """
        Fetch the full list of posts.

        Returns:
            ApiResult with the list of posts, or the classified error
        """
        return await self._get(POSTS_ENDPOINT, self._parse_posts)

    async def fetch_post_by_id(self, post_id: int) -> ApiResult[Post]:
        """
        Fetch a single post.

        Args:
            post_id: The post id

        Returns:
            ApiResult with the post, or the classified error
        """
        return await self._get(f"{POSTS_ENDPOINT}/{post_id}", Post.from_api)

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "PostApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _get(self, path: str, parse: Callable[[Any], T]) -> ApiResult[T]:
        async with self._lock:
            logger.info(f"GET {self.base_url}{path}")

            try:
                # Body is read in full and the connection released before returning
                response = await self.client.get(path)
            except httpx.HTTPError as e:
                message = f"Network error: {str(e) or type(e).__name__}"
                logger.warning(message)
                return ApiResult.failure(ApiErrorKind.NETWORK, message)

            if not response.is_success:
                message = f"Server error: {response.status_code}"
                logger.warning(f"{message} for {path}")
                return ApiResult.failure(
                    ApiErrorKind.HTTP_STATUS, message, status_code=response.status_code
                )

            try:
                return ApiResult.success(parse(response.json()))
            except (ValueError, KeyError, TypeError) as e:
                message = f"JSON parsing error: {e}"
                logger.warning(f"{message} for {path}")
                return ApiResult.failure(ApiErrorKind.PARSE, message)

    @staticmethod
    def _parse_posts(data: Any) -> List[Post]:
        if not isinstance(data, list):
            raise TypeError(f"Expected JSON array, got {type(data).__name__}")
        return [Post.from_api(item) for item in data]
