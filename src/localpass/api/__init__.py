"""LocalPass - local HTTP API for the desktop frontend."""

from .main import create_app, start_api_server

__all__ = ["create_app", "start_api_server"]
