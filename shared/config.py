"""Shared configuration utilities."""

import os
from typing import Optional

# Locally created posts get ids above the server's range
LOCAL_ID_OFFSET = 1000


def get_env(key: str, default: Optional[str] = None, required: bool = False) -> str:
    """Get environment variable with optional default and required validation."""
    value = os.getenv(key, default)
    if required and not value:
        raise ValueError(f"Required environment variable {key} is not set")
    return value


def get_database_url() -> str:
    """Get SQLite database URL for the local post cache from environment."""
    return get_env("DATABASE_URL", "sqlite:///posts.db")


def get_posts_api_config() -> dict:
    """Get remote posts API configuration from environment."""
    return {
        "base_url": get_env("POSTS_API_BASE_URL", "https://jsonplaceholder.typicode.com"),
        "connect_timeout": float(get_env("POSTS_API_CONNECT_TIMEOUT", "10")),
        "read_timeout": float(get_env("POSTS_API_READ_TIMEOUT", "15")),
    }


def get_connectivity_config() -> dict:
    """Get the host probed to decide whether the network is reachable."""
    return {
        "host": get_env("CONNECTIVITY_CHECK_HOST", "jsonplaceholder.typicode.com"),
        "port": int(get_env("CONNECTIVITY_CHECK_PORT", "443")),
        "timeout": float(get_env("CONNECTIVITY_CHECK_TIMEOUT", "3")),
    }
