"""User actions and the single handler that dispatches them."""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from services.sync_service.orchestrator import SyncCoordinator
from shared.db_operations import DatabaseOperations
from shared.errors import AuthenticationError, NotFoundError, ValidationError
from shared.models import Post
from shared.preferences import AppPreferences

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 4

# Owner ids offered by the post editor
MIN_USER_ID = 1
MAX_USER_ID = 10


class ActionType(str, Enum):
    """Intents forwarded from the presentation layer."""
    LOAD = "load"
    REFRESH = "refresh"
    LIST_FAVORITES = "list_favorites"
    GET_POST = "get_post"
    CREATE_POST = "create_post"
    EDIT_POST = "edit_post"
    DELETE_POST = "delete_post"
    TOGGLE_FAVORITE = "toggle_favorite"
    REGISTER = "register"
    LOGIN = "login"
    LOGOUT = "logout"
    SET_THEME = "set_theme"


@dataclass
class Action:
    """An action message: its type plus keyword arguments for the handler."""
    type: ActionType
    payload: Dict[str, Any] = field(default_factory=dict)


class ActionHandler:
    """Routes every action to the coordinator, the store or the preferences."""

    def __init__(
        self,
        coordinator: SyncCoordinator,
        db_ops: DatabaseOperations,
        preferences: AppPreferences
    ):
        self.coordinator = coordinator
        self.db_ops = db_ops
        self.preferences = preferences
        self._routes = {
            ActionType.LOAD: self._load,
            ActionType.REFRESH: self._refresh,
            ActionType.LIST_FAVORITES: self._list_favorites,
            ActionType.GET_POST: self._get_post,
            ActionType.CREATE_POST: self._create_post,
            ActionType.EDIT_POST: self._edit_post,
            ActionType.DELETE_POST: self._delete_post,
            ActionType.TOGGLE_FAVORITE: self._toggle_favorite,
            ActionType.REGISTER: self._register,
            ActionType.LOGIN: self._login,
            ActionType.LOGOUT: self._logout,
            ActionType.SET_THEME: self._set_theme,
        }

    async def handle(self, action: Action) -> Any:
        """
        Dispatch an action.

        Raises:
            ValidationError: Input rejected, nothing was changed
            AuthenticationError: Login with unknown credentials
            NotFoundError: The post id is not stored
        """
        logger.debug(f"Handling action {action.type.value}")
        return await self._routes[action.type](**action.payload)

    # Posts

    async def _load(self):
        return await self.coordinator.load()

    async def _refresh(self):
        return await self.coordinator.refresh()

    async def _list_favorites(self):
        return await asyncio.to_thread(self.db_ops.list_favorites)

    async def _get_post(self, post_id: int) -> Post:
        post = await self.coordinator.load_post(post_id)
        if post is None:
            raise NotFoundError(post_id)
        return post

    async def _create_post(self, title: str, body: str, user_id: int = 1, is_favorite: bool = False) -> Post:
        title, body = _validate_post_fields(title, body, user_id)

        post = await asyncio.to_thread(
            self.db_ops.insert_local_post, title, body, user_id, is_favorite
        )

        logger.info(f"Created local post {post.id}")
        return post

    async def _edit_post(
        self,
        post_id: int,
        title: str,
        body: str,
        user_id: Optional[int] = None,
        is_favorite: Optional[bool] = None
    ) -> Post:
        title, body = _validate_post_fields(title, body, user_id)

        updated = await asyncio.to_thread(
            self.db_ops.update_post, post_id, title, body, user_id, is_favorite
        )
        if not updated:
            raise NotFoundError(post_id)

        logger.info(f"Updated post {post_id}")
        return await asyncio.to_thread(self.db_ops.get_post, post_id)

    async def _delete_post(self, post_id: int) -> int:
        deleted = await asyncio.to_thread(self.db_ops.delete_post, post_id)
        logger.info(f"Deleted post {post_id} ({deleted} rows)")
        return deleted

    async def _toggle_favorite(self, post_id: int, is_favorite: Optional[bool] = None) -> Post:
        post = await asyncio.to_thread(self.db_ops.get_post, post_id)
        if post is None:
            raise NotFoundError(post_id)

        post.is_favorite = (not post.is_favorite) if is_favorite is None else is_favorite
        await asyncio.to_thread(self.db_ops.set_favorite, post_id, post.is_favorite)
        return post

    # Session

    async def _register(self, username: str, password: str, confirm_password: str) -> bool:
        username = (username or "").strip()
        password = (password or "").strip()
        confirm_password = (confirm_password or "").strip()

        errors = {}
        if not username:
            errors["username"] = "Username is required"
        elif await asyncio.to_thread(self.db_ops.username_exists, username):
            errors["username"] = "Username already exists"

        if not password:
            errors["password"] = "Password is required"
        elif len(password) < MIN_PASSWORD_LENGTH:
            errors["password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"

        if password != confirm_password:
            errors["confirm_password"] = "Passwords do not match"

        if errors:
            raise ValidationError(errors)

        if not await asyncio.to_thread(self.db_ops.register_user, username, password):
            raise ValidationError({"username": "Username already exists"})
        return True

    async def _login(self, username: str, password: str) -> str:
        username = (username or "").strip()
        password = (password or "").strip()

        errors = {}
        if not username:
            errors["username"] = "Username is required"
        if not password:
            errors["password"] = "Password is required"
        if errors:
            raise ValidationError(errors)

        if not await asyncio.to_thread(self.db_ops.authenticate, username, password):
            logger.info(f"Failed login for {username}")
            raise AuthenticationError("Invalid username or password")

        await asyncio.to_thread(self.preferences.login, username)
        return username

    async def _logout(self) -> None:
        await asyncio.to_thread(self.preferences.logout)

    async def _set_theme(self, theme: int) -> int:
        try:
            await asyncio.to_thread(self.preferences.set_theme, theme)
        except ValueError as e:
            raise ValidationError({"theme": str(e)})
        return theme


def _validate_post_fields(title: str, body: str, user_id: Optional[int]):
    title = (title or "").strip()
    body = (body or "").strip()

    errors = {}
    if not title:
        errors["title"] = "Title is required"
    if not body:
        errors["body"] = "Body is required"
    if user_id is not None and not MIN_USER_ID <= user_id <= MAX_USER_ID:
        errors["user_id"] = f"User id must be between {MIN_USER_ID} and {MAX_USER_ID}"
    if errors:
        raise ValidationError(errors)

    return title, body
