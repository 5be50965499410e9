"""App Service - FastAPI application hosting the posts actions."""

import asyncio
import logging
import sys
import os
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from sqlalchemy import text

from services.app_service.actions import Action, ActionHandler, ActionType
from services.post_api.client import PostApiClient
from services.sync_service.orchestrator import SyncCoordinator
from shared.db_operations import DatabaseOperations
from shared.errors import AuthenticationError, NotFoundError, ValidationError
from shared.models import Post, SyncResult
from shared.preferences import AppPreferences, THEME_NAMES

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)

logger = logging.getLogger(__name__)

# Global instances
db_ops: Optional[DatabaseOperations] = None
preferences: Optional[AppPreferences] = None
api_client: Optional[PostApiClient] = None
coordinator: Optional[SyncCoordinator] = None
handler: Optional[ActionHandler] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    global db_ops, preferences, api_client, coordinator, handler

    logger.info("App Service starting up...")

    db_ops = DatabaseOperations()
    db_ops.init_schema()
    logger.info(f"Local store initialized at {db_ops.database_url}")

    preferences = AppPreferences(db_ops)

    api_client = PostApiClient()
    logger.info(f"Posts API client initialized - {api_client.base_url}")

    coordinator = SyncCoordinator(api_client, db_ops, preferences)
    handler = ActionHandler(coordinator, db_ops, preferences)

    yield

    # Cleanup
    await coordinator.wait_for_pending_writes()
    await api_client.aclose()
    db_ops.dispose()
    logger.info("App Service shutting down...")


# Create FastAPI application
app = FastAPI(
    title="App Service",
    description="Posts with online refresh and offline cache",
    version="0.1.0",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Bad Request", "detail": str(exc), "errors": exc.errors}
    )


@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError):
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"error": "Unauthorized", "detail": str(exc)}
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"error": "Not Found", "detail": str(exc)}
    )


# Error handling middleware
@app.middleware("http")
async def error_handling_middleware(request: Request, call_next):
    """Global error handling middleware (local store faults end up here)."""
    try:
        response = await call_next(request)
        return response
    except Exception as exc:
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal server error",
                "detail": str(exc)
            }
        )


# Request/Response models
class PostModel(BaseModel):
    """Response model for a post."""
    id: int
    user_id: int
    title: str
    body: str
    is_favorite: bool = False

    @classmethod
    def from_post(cls, post: Post) -> "PostModel":
        return cls(
            id=post.id,
            user_id=post.user_id,
            title=post.title,
            body=post.body,
            is_favorite=post.is_favorite
        )


class PostWriteRequest(BaseModel):
    """Request model for creating a post."""
    title: str
    body: str
    user_id: int = Field(1, description="Owner id (1-10)")
    is_favorite: bool = False


class PostEditRequest(BaseModel):
    """Request model for editing a post; omitted fields keep their stored value."""
    title: str
    body: str
    user_id: Optional[int] = Field(None, description="Owner id (1-10)")
    is_favorite: Optional[bool] = None


class FavoriteRequest(BaseModel):
    """Request model for the favorite flag; omitted value toggles it."""
    is_favorite: Optional[bool] = None


class PostsResponse(BaseModel):
    """Response model for load and refresh."""
    posts: List[PostModel]
    source: str
    offline: bool
    notice: Optional[str] = None
    error: Optional[Dict] = None
    last_sync_time: int = 0


class RegisterRequest(BaseModel):
    username: str
    password: str
    confirm_password: str


class LoginRequest(BaseModel):
    username: str
    password: str


class SessionResponse(BaseModel):
    logged_in: bool
    username: str
    last_sync_time: int


class ThemeRequest(BaseModel):
    theme: int = Field(..., description="0 light, 1 dark, 2 ocean")


async def dispatch(action_type: ActionType, **payload):
    return await handler.handle(Action(action_type, payload))


async def _posts_response(result: SyncResult) -> PostsResponse:
    error = None
    if result.error:
        error = {
            "kind": result.error.kind.value,
            "message": result.error.message,
            "status_code": result.error.status_code
        }
    return PostsResponse(
        posts=[PostModel.from_post(post) for post in result.posts],
        source=result.source.value,
        offline=result.offline,
        notice=result.notice,
        error=error,
        last_sync_time=await asyncio.to_thread(preferences.get_last_sync_time)
    )


def _check_database() -> bool:
    try:
        with db_ops.get_session() as session:
            session.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


def _session_state() -> SessionResponse:
    return SessionResponse(
        logged_in=preferences.is_logged_in(),
        username=preferences.get_username(),
        last_sync_time=preferences.get_last_sync_time()
    )


# Health check endpoint
@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check():
    """Health check endpoint."""
    db_healthy = await asyncio.to_thread(_check_database)

    return {
        "status": "healthy" if db_healthy else "degraded",
        "service": "app_service",
        "version": "0.1.0",
        "dependencies": {
            "database": "up" if db_healthy else "down"
        }
    }


@app.get("/posts", response_model=PostsResponse)
async def load_posts():
    """Load posts from the API when online, otherwise from the local store."""
    return await _posts_response(await dispatch(ActionType.LOAD))


@app.post("/posts/refresh", response_model=PostsResponse)
async def refresh_posts():
    """Refresh posts; without network the local posts come back with a notice."""
    return await _posts_response(await dispatch(ActionType.REFRESH))


@app.get("/posts/favorites", response_model=List[PostModel])
async def list_favorites():
    posts = await dispatch(ActionType.LIST_FAVORITES)
    return [PostModel.from_post(post) for post in posts]


@app.get("/posts/{post_id}", response_model=PostModel)
async def get_post(post_id: int):
    return PostModel.from_post(await dispatch(ActionType.GET_POST, post_id=post_id))


@app.post("/posts", response_model=PostModel, status_code=status.HTTP_201_CREATED)
async def create_post(request: PostWriteRequest):
    post = await dispatch(
        ActionType.CREATE_POST,
        title=request.title,
        body=request.body,
        user_id=request.user_id,
        is_favorite=request.is_favorite
    )
    return PostModel.from_post(post)


@app.put("/posts/{post_id}", response_model=PostModel)
async def edit_post(post_id: int, request: PostEditRequest):
    post = await dispatch(
        ActionType.EDIT_POST,
        post_id=post_id,
        title=request.title,
        body=request.body,
        user_id=request.user_id,
        is_favorite=request.is_favorite
    )
    return PostModel.from_post(post)


@app.delete("/posts/{post_id}")
async def delete_post(post_id: int):
    deleted = await dispatch(ActionType.DELETE_POST, post_id=post_id)
    return {"post_id": post_id, "deleted": deleted}


@app.put("/posts/{post_id}/favorite", response_model=PostModel)
async def set_favorite(post_id: int, request: FavoriteRequest):
    post = await dispatch(ActionType.TOGGLE_FAVORITE, post_id=post_id, is_favorite=request.is_favorite)
    return PostModel.from_post(post)


@app.post("/auth/register", status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest):
    await dispatch(
        ActionType.REGISTER,
        username=request.username,
        password=request.password,
        confirm_password=request.confirm_password
    )
    return {"status": "registered", "username": request.username.strip()}


@app.post("/auth/login", response_model=SessionResponse)
async def login(request: LoginRequest):
    await dispatch(ActionType.LOGIN, username=request.username, password=request.password)
    return await get_session()


@app.post("/auth/logout", response_model=SessionResponse)
async def logout():
    await dispatch(ActionType.LOGOUT)
    return await get_session()


@app.get("/session", response_model=SessionResponse)
async def get_session():
    return await asyncio.to_thread(_session_state)


@app.get("/preferences/theme")
async def get_theme():
    theme = await asyncio.to_thread(preferences.get_theme)
    return {"theme": theme, "name": THEME_NAMES[theme]}


@app.put("/preferences/theme")
async def set_theme(request: ThemeRequest):
    theme = await dispatch(ActionType.SET_THEME, theme=request.theme)
    return {"theme": theme, "name": THEME_NAMES[theme]}


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("APP_SERVICE_PORT", 8010))
    uvicorn.run(app, host="0.0.0.0", port=port)
