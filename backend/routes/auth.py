# backend/routes/auth.py
from fastapi import APIRouter, Depends, Request
from sqlalchemy import func
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas.user import Token, UserCreate, UserLogin, UserResponse
from utils.audit import client_ip, write_log
from utils.dashboard_cache import DASHBOARD_CACHE_TAGS
from utils.db_helpers import commit_or_conflict
from utils.exceptions import ConflictException, ForbiddenException, UnauthorizedException
from utils.hashing import get_password_hash, verify_password
from utils.responses import created_response, success_response
from utils.tokenJWT import create_access_token, get_current_user

router = APIRouter(prefix="/auth", tags=["Auth"])


# Register a new user; self-registered accounts always start with role "user"
@router.post("/register")
def register(payload: UserCreate, request: Request, db: Session = Depends(get_db)):
    normalized_email = payload.email.strip().lower()

    existing = db.query(User).filter(func.lower(User.email) == normalized_email).first()
    if existing:
        write_log(
            db, user_id=None, action="REGISTER", resource="auth", status="FAIL",
            ip=client_ip(request), meta={"email": normalized_email, "reason": "Email exists"},
        )
        raise ConflictException("Email already registered")

    new_user = User(
        name=payload.name,
        email=normalized_email,
        password_hash=get_password_hash(payload.password),
        role="user",
    )
    db.add(new_user)
    commit_or_conflict(db, "Email already registered")
    db.refresh(new_user)

    write_log(
        db, user_id=new_user.id, action="REGISTER", resource="auth",
        ip=client_ip(request), meta={"email": new_user.email},
    )
    request.app.state.cache.invalidate(DASHBOARD_CACHE_TAGS["USER"])
    return created_response(UserResponse.model_validate(new_user), "User registered successfully")


# Authenticate user and issue JWT token
@router.post("/login")
def login(payload: UserLogin, request: Request, db: Session = Depends(get_db)):
    db_user = db.query(User).filter(func.lower(User.email) == payload.email.strip().lower()).first()

    if not db_user or not verify_password(payload.password, db_user.password_hash):
        write_log(
            db, user_id=(db_user.id if db_user else None), action="LOGIN", resource="auth",
            status="FAIL", ip=client_ip(request), meta={"email": payload.email},
        )
        raise UnauthorizedException("Invalid credentials")

    if db_user.banned:
        write_log(
            db, user_id=db_user.id, action="LOGIN", resource="auth", status="FAIL",
            ip=client_ip(request), meta={"email": db_user.email, "reason": "Banned"},
        )
        raise ForbiddenException("This account has been banned")

    access_token = create_access_token({"sub": db_user.email, "role": db_user.role}, request.app.state.settings)

    write_log(
        db, user_id=db_user.id, action="LOGIN", resource="auth",
        ip=client_ip(request), meta={"email": db_user.email},
    )
    return success_response(Token(access_token=access_token, user=UserResponse.model_validate(db_user)))


# Retrieve current authenticated user details
@router.get("/me")
def me(current_user: User = Depends(get_current_user)):
    return success_response(UserResponse.model_validate(current_user))
