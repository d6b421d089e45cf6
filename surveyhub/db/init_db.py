import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from surveyhub.core.config.settings import get_settings
from surveyhub.core.security.auth import create_hashed_password
from surveyhub.models.user import Role, RoleType, User

logger = logging.getLogger(__name__)

def init_db(db: Session) -> None:
    """Initialize database with required data"""
    # Create roles if they don't exist
    for role_type in RoleType:
        existing_role = db.query(Role).filter(Role.role == role_type).first()
        if not existing_role:
            db.add(Role(role=role_type))

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    settings = get_settings()
    if db.query(User).filter(User.username == settings.DEFAULT_ADMIN_USERNAME).first():
        return

    admin_role = db.query(Role).filter(Role.role == RoleType.ADMIN).first()
    db.add(User(
        name="Administrator",
        email=settings.DEFAULT_ADMIN_EMAIL,
        username=settings.DEFAULT_ADMIN_USERNAME,
        hashed_password=create_hashed_password(settings.DEFAULT_ADMIN_PASSWORD),
        role_id=admin_role.id,
    ))
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    logger.info(f"Default admin '{settings.DEFAULT_ADMIN_USERNAME}' created")
