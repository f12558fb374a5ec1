from okrguard.database.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from okrguard.database.engine import create_installer_engine, engine
from okrguard.database.tenant import clear_context, read_context, set_context

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "engine",
    "create_installer_engine",
    "set_context",
    "clear_context",
    "read_context",
]
