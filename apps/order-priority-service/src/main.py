"""Compatibility entrypoint for order priority service."""

try:
    from .order_priority.main import app
except ImportError:  # pragma: no cover
    from order_priority.main import app

__all__ = ["app"]
