from .models import Integration, BriefItem
from .database import Base, DATABASE_URL, create_engine, create_session_factory, init_db

__all__ = [
    "Integration",
    "BriefItem",
    "Base",
    "DATABASE_URL",
    "create_engine",
    "create_session_factory",
    "init_db",
]
