"""Server side of edurelay: the FastAPI gateway in front of the AI upstream."""

from edurelay.gateway.app import create_app

__all__ = ["create_app"]
