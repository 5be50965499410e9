"""Tests for the connectivity check and configuration helpers."""

import os
from unittest.mock import MagicMock, patch

import pytest

from shared.config import get_env, get_posts_api_config
from shared.connectivity import is_network_available


def test_network_available_when_connection_opens():
    with patch("shared.connectivity.socket.create_connection", return_value=MagicMock()) as mock_connect:
        assert is_network_available("example.test", 443, timeout=1) is True

    mock_connect.assert_called_once_with(("example.test", 443), timeout=1)


def test_network_unavailable_on_os_error():
    with patch("shared.connectivity.socket.create_connection", side_effect=OSError("unreachable")):
        assert is_network_available("example.test", 443, timeout=1) is False


def test_network_check_uses_environment():
    env = {"CONNECTIVITY_CHECK_HOST": "probe.test", "CONNECTIVITY_CHECK_PORT": "8080"}
    with patch.dict(os.environ, env), \
            patch("shared.connectivity.socket.create_connection", return_value=MagicMock()) as mock_connect:
        is_network_available()

    assert mock_connect.call_args.args[0] == ("probe.test", 8080)


def test_get_env_required_missing():
    with patch.dict(os.environ, {}, clear=True):
        with pytest.raises(ValueError):
            get_env("POSTS_API_BASE_URL", required=True)


def test_posts_api_config_defaults():
    with patch.dict(os.environ, {}, clear=True):
        config = get_posts_api_config()

    assert config == {
        "base_url": "https://jsonplaceholder.typicode.com",
        "connect_timeout": 10.0,
        "read_timeout": 15.0,
    }
