"""
Create (or look up) a local user and print a bearer token for it.
Run: python -m scripts.create_user someone@example.com [password]
"""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.db.session import SessionLocal
from app.db.init_db import init_db
from app.db.models.user import User
from app.core.security import hash_password, create_access_token
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_user(email: str, password: str = None, full_name: str = "Local User") -> User:
    """Find or create the user with this email."""
    init_db()
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email.lower()).first()
        if user:
            logger.info(f"Found existing user: {email} (ID: {user.id})")
            return user

        user = User(
            email=email.lower(),
            full_name=full_name,
            password_hash=hash_password(password) if password else None,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info(f"Created user with ID: {user.id}")
        return user
    except Exception:
        db.rollback()
        logger.exception(f"Failed to create user {email}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python -m scripts.create_user <email> [password]")
        sys.exit(1)

    user = create_user(sys.argv[1], sys.argv[2] if len(sys.argv) > 2 else None)
    print(create_access_token({"sub": user.email}))
