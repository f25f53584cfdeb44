"""Database module: users table and session management"""
from .models import Base, User
from .connection import get_db, init_db, create_tables

__all__ = [
    'Base',
    'User',
    'get_db',
    'init_db',
    'create_tables',
]
