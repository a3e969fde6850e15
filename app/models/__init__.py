"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. Base.metadata knows every table when create_all runs at startup
  2. Other modules can import from app.models directly
"""

from app.models.organization import Organization  # noqa: F401
from app.models.user import User, UserRole, AuthProvider  # noqa: F401
