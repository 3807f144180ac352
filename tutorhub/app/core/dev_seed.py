import os

from sqlalchemy.orm import Session

from tutorhub.app.core.security import get_password_hash
from tutorhub.app.domain.status import UserRole
from tutorhub.app.models.user import User


DEFAULT_DEV_PASSWORD = "Secret123!"
DEFAULT_DEV_USERS = [
    ("tutor@test.com", "Demo Tutor", UserRole.TUTOR),
    ("student@test.com", "Demo Student", UserRole.STUDENT),
]


def ensure_default_dev_users(db: Session) -> None:
    """
    Create a demo tutor and student for local development if they do not exist.
    Skips execution when running under pytest or outside the development environment.
    """
    if os.getenv("PYTEST_CURRENT_TEST") or os.getenv("ENVIRONMENT", "development") != "development":
        return

    created = False
    for email, full_name, role in DEFAULT_DEV_USERS:
        existing = db.query(User).filter(User.email == email).first()
        if existing:
            continue

        user = User(
            email=email,
            full_name=full_name,
            hashed_password=get_password_hash(DEFAULT_DEV_PASSWORD),
            role=role.value,
            is_active=True,
            is_admin=False,
        )
        db.add(user)
        created = True

    if created:
        db.commit()
