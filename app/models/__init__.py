"""SQLAlchemy models."""

from .base import Base
from .log import RequestLog  # noqa: F401
from .track import Track  # noqa: F401

__all__ = [
    "Base",
    "RequestLog",
    "Track",
]
