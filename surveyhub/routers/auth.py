import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from surveyhub.core.security.auth import (
    create_access_token,
    create_hashed_password,
    create_refresh_token,
    get_current_user,
    user_from_refresh_token,
    verify_password,
)
from surveyhub.crud.users import create_user, get_role, get_user_by_email, get_user_by_username, update_user
from surveyhub.db.session import get_db
from surveyhub.models.user import RoleType, User
from surveyhub.schemas.user import RefreshRequest, RegisterRequest, Token, UserRead, UserUpdate

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["Auth"]
)

users_router = APIRouter(
    prefix="/users",
    tags=["Users"]
)


def _user_read(user: User) -> UserRead:
    return UserRead(
        id=user.id,
        name=user.name,
        email=user.email,
        username=user.username,
        role=user.role.role.value,
    )


@router.post("/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def register(request: RegisterRequest, db: Session = Depends(get_db)):
    if get_user_by_username(db, request.username):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username already registered"
        )
    if get_user_by_email(db, request.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    role = get_role(db, RoleType.USER)
    if not role:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="User role not found"
        )

    user = create_user(db, {
        "name": request.name,
        "email": request.email,
        "username": request.username,
        "hashed_password": create_hashed_password(request.password),
        "role_id": role.id,
    })
    logger.info(f"Registered user {user.username} (id {user.id})")
    return _user_read(user)


@router.post("/login", response_model=Token)
def login(request: Annotated[OAuth2PasswordRequestForm, Depends()], db: Session = Depends(get_db)):
    user = get_user_by_username(db, request.username)

    # Verify credentials
    if not user or not verify_password(request.password, user.hashed_password):
        logger.info(f"Failed login for {request.username}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return _issue_tokens(user)


@router.post("/refresh", response_model=Token)
def refresh(request: RefreshRequest, db: Session = Depends(get_db)):
    user = user_from_refresh_token(request.refresh_token, db)
    logger.info(f"Refreshed tokens for {user.username}")
    return _issue_tokens(user)


def _issue_tokens(user: User) -> Token:
    return Token(
        access_token=create_access_token({"sub": user.username}),
        refresh_token=create_refresh_token(user.username),
        role=user.role.role.value,
    )


@users_router.get("/me", response_model=UserRead)
def read_me(current_user: User = Depends(get_current_user)):
    return _user_read(current_user)


@users_router.put("/me", response_model=UserRead)
def update_me(
    request: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if request.email is not None and request.email != current_user.email:
        existing = get_user_by_email(db, request.email)
        if existing and existing.id != current_user.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already registered"
            )

    user = update_user(db, current_user, request.model_dump(exclude_none=True))
    logger.info(f"Updated profile of {user.username}")
    return _user_read(user)
