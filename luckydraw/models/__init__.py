from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .record import StoredRecord  # noqa: F401

__all__ = [
    "Base",
    "StoredRecord",
]
