"""HTTP query surface."""

from sma.api.app import create_app

__all__ = ["create_app"]
