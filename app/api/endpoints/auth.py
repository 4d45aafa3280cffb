import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, status, Depends
from fastapi.security import OAuth2PasswordRequestForm, OAuth2PasswordBearer
from sqlmodel import Session, select

from app.core.errors import AuthenticationError, NotFoundError
from app.core.security import verify_password, get_password_hash, create_access_token, decode_access_token
from app.database import get_session
from app.models.enums import UserRole
from app.models.user import User
from app.schemas.user import UserCreate, UserRead, Token, UserRolesUpdate

router = APIRouter()
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)
logger = logging.getLogger(__name__)


def to_user_read(user: User) -> UserRead:
    return UserRead(
        id=user.id,
        username=user.username,
        email=user.email,
        display_name=user.display_name,
        roles=user.role_list(),
        company_id=user.company_id,
        last_access_date=user.last_access_date,
        created_date=user.created_date,
        updated_date=user.updated_date,
        active=user.active,
    )


@router.post("/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def register(user_in: UserCreate, session: Session = Depends(get_session)):
    if session.exec(select(User).where(User.username == user_in.username)).first():
        raise HTTPException(status_code=400, detail="Username already registered")
    if session.exec(select(User).where(User.email == user_in.email)).first():
        raise HTTPException(status_code=400, detail="Email already registered")
    user = User(
        username=user_in.username,
        email=user_in.email,
        display_name=user_in.display_name,
        password_hash=get_password_hash(user_in.password),
        roles=user_in.role.value,
        company_id=user_in.company_id,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info("Registered user %s with role %s", user.id, user.roles)
    return to_user_read(user)


@router.post("/login", response_model=Token)
def login(form_data: OAuth2PasswordRequestForm = Depends(), session: Session = Depends(get_session)):
    user = session.exec(select(User).where(User.username == form_data.username)).first()
    if not user or not verify_password(form_data.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Incorrect username or password")
    if not user.active:
        raise HTTPException(status_code=403, detail="User inactive")
    user.last_access_date = datetime.utcnow()
    session.add(user)
    session.commit()
    token = create_access_token({
        "sub": str(user.id),
        "name": user.display_name,
        "roles": user.role_list(),
    })
    return Token(access_token=token)


def get_current_user(token: Optional[str] = Depends(oauth2_scheme), session: Session = Depends(get_session)):
    if not token:
        raise AuthenticationError("Unauthorized")
    payload = decode_access_token(token)
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise AuthenticationError("Unauthorized")
    user = session.get(User, user_id)
    if user is None or not user.active:
        raise AuthenticationError("Unauthorized")
    return user


@router.get("/me", response_model=UserRead)
def me(current_user: User = Depends(get_current_user)):
    return to_user_read(current_user)


@router.put("/users/{user_id}/roles", response_model=UserRead)
def update_roles(
    user_id: int,
    roles_in: UserRolesUpdate,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    if not current_user.has_role(UserRole.ADMINISTRATOR.value):
        raise HTTPException(status_code=403, detail="Insufficient permissions")
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    user.roles = ",".join(dict.fromkeys(r.value for r in roles_in.roles))
    user.updated_date = datetime.utcnow()
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info("User %s set roles of user %s to %s", current_user.id, user_id, user.roles)
    return to_user_read(user)
