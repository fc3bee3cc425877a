"""FastAPI HTTP layer package.

Public re-export so callers can write::

    uvicorn cascade.api:app --reload
"""

from cascade.api.app import app, create_app

__all__ = ["app", "create_app"]
