# Import all auth models so SQLAlchemy can discover them
from .models import User, UserSession, UserRole

__all__ = ["User", "UserSession", "UserRole"]
