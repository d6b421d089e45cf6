from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from surveyhub.core.config.settings import get_settings
from surveyhub.core.security.principal import Principal
from surveyhub.db.session import get_db
from surveyhub.models.user import User

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

REFRESH_TOKEN_TYPE = "refresh"

_token_url = f"{get_settings().API_V1_PREFIX}/auth/login"
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=_token_url)
# Same scheme, but a missing header yields None instead of a 401 (anonymous submissions)
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl=_token_url, auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)

def create_hashed_password(password: str) -> str:
    return pwd_context.hash(password)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    settings = get_settings()
    to_encode = data.copy()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": datetime.now(timezone.utc) + expires_delta})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

def create_refresh_token(username: str) -> str:
    # Refresh tokens are only accepted by /auth/refresh, never as bearer credentials
    expires_delta = timedelta(days=get_settings().REFRESH_TOKEN_EXPIRE_DAYS)
    return create_access_token({"sub": username, "type": REFRESH_TOKEN_TYPE}, expires_delta)


def _user_from_token(token: str, db: Session, token_type: Optional[str] = None) -> User:
    """
    Resolve the user a token was issued to.

    ``token_type`` None means an access token; refresh tokens are rejected
    unless ``token_type`` is "refresh".
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        username: str = payload.get("sub")
        if username is None or payload.get("type") != token_type:
            raise credentials_exception
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except jwt.PyJWTError:
        raise credentials_exception

    user = db.query(User).filter(User.username == username).first()
    if user is None:
        raise credentials_exception
    return user


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    return _user_from_token(token, db)

def get_current_principal(user: User = Depends(get_current_user)) -> Principal:
    return Principal.from_user(user)

def get_optional_principal(
    token: Optional[str] = Depends(optional_oauth2_scheme),
    db: Session = Depends(get_db),
) -> Optional[Principal]:
    if not token:
        return None
    return Principal.from_user(_user_from_token(token, db))

def user_from_refresh_token(token: str, db: Session) -> User:
    return _user_from_token(token, db, token_type=REFRESH_TOKEN_TYPE)
