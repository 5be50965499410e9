"""Sync orchestration logic: online fetch with offline fallback."""

import asyncio
import logging
import time
from typing import Callable, List, Optional, Set

from services.post_api.client import PostApiClient
from shared.connectivity import is_network_available
from shared.db_operations import DatabaseOperations
from shared.models import Post, PostSource, SyncResult
from shared.preferences import AppPreferences

logger = logging.getLogger(__name__)

REFRESH_SUCCESS_NOTICE = "Posts refreshed"
NETWORK_UNAVAILABLE_NOTICE = "Network unavailable"


class SyncCoordinator:
    """Decides between the remote API and the local store for each request."""

    def __init__(
        self,
        api_client: PostApiClient,
        db_ops: DatabaseOperations,
        preferences: AppPreferences,
        is_online: Callable[[], bool] = is_network_available
    ):
        """
        Initialize the sync coordinator.

        Args:
            api_client: Client for the remote posts API
            db_ops: Local store
            preferences: Preference store receiving the last sync time
            is_online: Connectivity predicate, evaluated on every request
        """
        self.api_client = api_client
        self.db_ops = db_ops
        self.preferences = preferences
        self.is_online = is_online
        self._pending_writes: Set[asyncio.Task] = set()

    async def load(self) -> SyncResult:
        """
        Load posts for display.

        Online: fetch from the API, falling back to the local store on error.
        Offline: read the local store and flag the result as offline.
        """
        if await self._check_online():
            return await self._fetch_remote()

        logger.info("No network, loading posts from local store")
        posts = await self._read_local()
        return SyncResult(posts=posts, source=PostSource.LOCAL, offline=True)

    async def refresh(self) -> SyncResult:
        """
        Refresh posts on user request.

        Same as load, except that a refresh without network also carries a
        "network unavailable" notice for the user.
        """
        if await self._check_online():
            return await self._fetch_remote()

        logger.info("Refresh requested without network, using local store")
        posts = await self._read_local()
        return SyncResult(
            posts=posts,
            source=PostSource.LOCAL,
            offline=True,
            notice=NETWORK_UNAVAILABLE_NOTICE
        )

    async def load_post(self, post_id: int) -> Optional[Post]:
        """
        Get a single post.

        The local copy wins since it carries local edits and the favorite
        flag. Posts missing locally are fetched from the API when online
        but not stored.
        """
        post = await asyncio.to_thread(self.db_ops.get_post, post_id)
        if post is not None:
            return post

        if not await self._check_online():
            return None

        result = await self.api_client.fetch_post_by_id(post_id)
        if not result.ok:
            logger.warning(f"Could not fetch post {post_id}: {result.error.message}")
            return None
        return result.value

    async def wait_for_pending_writes(self) -> None:
        """Wait until every scheduled store replacement has finished."""
        while self._pending_writes:
            await asyncio.gather(*list(self._pending_writes))

    async def _check_online(self) -> bool:
        return await asyncio.to_thread(self.is_online)

    async def _read_local(self) -> List[Post]:
        # Store faults propagate to the caller
        return await asyncio.to_thread(self.db_ops.list_posts)

    async def _fetch_remote(self) -> SyncResult:
        result = await self.api_client.fetch_posts()

        if result.ok:
            posts = result.value
            logger.info(f"Fetched {len(posts)} posts from API")
            self._schedule_replace(posts)
            # The fetched list is returned as is, the store catches up in the background
            return SyncResult(
                posts=list(posts),
                source=PostSource.REMOTE,
                offline=False,
                notice=REFRESH_SUCCESS_NOTICE
            )

        logger.warning(f"API fetch failed, falling back to local posts: {result.error.message}")
        posts = await self._read_local()
        return SyncResult(
            posts=posts,
            source=PostSource.LOCAL,
            offline=False,
            notice=result.error.message,
            error=result.error
        )

    def _schedule_replace(self, posts: List[Post]) -> None:
        task = asyncio.create_task(self._replace_local(list(posts)))
        self._pending_writes.add(task)
        task.add_done_callback(self._pending_writes.discard)

    async def _replace_local(self, posts: List[Post]) -> None:
        try:
            await asyncio.to_thread(self.db_ops.replace_all_posts, posts)
            await asyncio.to_thread(
                self.preferences.set_last_sync_time, int(time.time() * 1000)
            )
        except Exception as e:
            logger.error(f"Failed to store fetched posts: {e}", exc_info=True)
