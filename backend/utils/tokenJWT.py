# utils/tokenJWT.py
from datetime import datetime, timedelta
from typing import Dict, Optional, Sequence

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from config import Settings
from database import get_db
from models.users import User
from utils.exceptions import ForbiddenException, UnauthorizedException
from utils.permissions import check_permissions

# Missing header is reported as our own 401 envelope, not FastAPI's 403
bearer_scheme = HTTPBearer(auto_error=False)


# Generate a new JWT access token
def create_access_token(data: dict, settings: Settings, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


# Retrieve the currently authenticated user based on the JWT token
def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None:
        raise UnauthorizedException()

    settings: Settings = request.app.state.settings
    try:
        payload = jwt.decode(credentials.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        email: Optional[str] = payload.get("sub")
    except JWTError:
        raise UnauthorizedException("Could not validate credentials")
    if email is None:
        raise UnauthorizedException("Could not validate credentials")

    user = db.query(User).filter(User.email == email).first()
    if user is None or user.banned:
        raise UnauthorizedException("Could not validate credentials")
    return user


# Dependency factory: require every {resource: [actions]} pair for the caller's role
def require_permission(permission: Dict[str, Sequence[str]]):
    def _checker(request: Request, current_user: User = Depends(get_current_user)) -> User:
        access_control = request.app.state.access_control
        if not check_permissions(access_control, current_user.role, permission):
            raise ForbiddenException()
        return current_user

    return _checker
