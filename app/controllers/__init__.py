"""FastAPI routers acting as controllers in the MVC architecture."""

from . import tracks

__all__ = ["tracks"]
