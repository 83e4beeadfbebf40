"""
Database module untuk AuthCore.
Berisi base model dan session management.
"""

from authcore.db.base import Base, BaseModel
from authcore.db.session import Database, create_engine

__all__ = [
    "Base",
    "BaseModel",
    "Database",
    "create_engine"
]
