"""Network availability check used to pick the online or offline path."""

import logging
import socket
from typing import Optional

from shared.config import get_connectivity_config

logger = logging.getLogger(__name__)


def is_network_available(
    host: Optional[str] = None,
    port: Optional[int] = None,
    timeout: Optional[float] = None
) -> bool:
    """
    Check whether the posts API host is reachable.

    Opens (and immediately closes) a TCP connection to the configured host.

    Returns:
        True if a connection could be opened, False otherwise
    """
    config = get_connectivity_config()
    host = host or config["host"]
    port = port or config["port"]
    timeout = timeout if timeout is not None else config["timeout"]

    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError as e:
        logger.info(f"Network unavailable ({host}:{port}): {e}")
        return False
