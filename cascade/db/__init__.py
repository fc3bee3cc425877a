"""Database layer package.

Public re-exports so callers can write::

    from cascade.db import get_connection, init_db
    from cascade.db import nodes, projects
"""

from cascade.db.connection import get_connection
from cascade.db.migrations import init_db
from cascade.db import nodes, projects

__all__ = ["get_connection", "init_db", "nodes", "projects"]
