"""Database adapter for the match-tracker service."""

from .manager import DatabaseManager
from .models import Base

__all__ = ["DatabaseManager", "Base"]
