# backend/routes/admin.py
from fastapi import APIRouter, Depends, Request
from sqlalchemy import or_
from sqlalchemy.orm import Session

from database import get_db
from models.order import Order
from models.users import User
from schemas.common import parse_query
from schemas.user import RoleUpdate, UserQuery, UserResponse
from utils.audit import client_ip, write_log
from utils.db_helpers import apply_sort, paginate
from utils.exceptions import BadRequestException, NotFoundException
from utils.responses import paginated, success_response
from utils.tokenJWT import require_permission

router = APIRouter(prefix="/users", tags=["Admin"])

SORT_COLUMNS = {
    "id": User.id,
    "name": User.name,
    "email": User.email,
    "createdAt": User.created_at,
}


def _get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundException("User not found")
    return user


def _not_self(user: User, current_user: User, what: str) -> None:
    if user.id == current_user.id:
        raise BadRequestException(f"You cannot {what} your own account")


# Retrieve a list of users with filtering, sorting, and pagination
@router.get("")
def get_all_users(
    current_user: User = Depends(require_permission({"user": ["list"]})),
    params: UserQuery = Depends(parse_query(UserQuery)),
    db: Session = Depends(get_db),
):
    query = db.query(User)
    if params.search:
        like = f"%{params.search.lower()}%"
        query = query.filter(or_(User.email.ilike(like), User.name.ilike(like)))
    if params.role:
        query = query.filter(User.role == params.role)

    query = apply_sort(query, SORT_COLUMNS, params.sort_by, params.sort_order)
    users, total = paginate(query, params)
    return paginated([UserResponse.model_validate(u) for u in users], params.page, params.limit, total)


# Update user role
@router.put("/{user_id}/role")
def update_user_role(
    user_id: int,
    new_role: RoleUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"user": ["set-role"]})),
):
    user = _get_user(db, user_id)
    _not_self(user, current_user, "change the role of")

    previous = user.role
    user.role = new_role.role
    db.commit()
    db.refresh(user)

    write_log(
        db, user_id=current_user.id, action="USER_SET_ROLE", resource="users",
        ip=client_ip(request), meta={"id": user.id, "from": previous, "to": user.role},
    )
    return success_response(UserResponse.model_validate(user), f"User {user.email} role updated to {user.role}")


def _set_banned(db: Session, request: Request, user_id: int, current_user: User, banned: bool):
    user = _get_user(db, user_id)
    _not_self(user, current_user, "ban" if banned else "unban")

    user.banned = banned
    db.commit()
    db.refresh(user)

    write_log(
        db, user_id=current_user.id, action="USER_BAN" if banned else "USER_UNBAN", resource="users",
        ip=client_ip(request), meta={"id": user.id},
    )
    return success_response(UserResponse.model_validate(user), f"User {user.email} {'banned' if banned else 'unbanned'}")


@router.put("/{user_id}/ban")
def ban_user(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"user": ["ban"]})),
):
    return _set_banned(db, request, user_id, current_user, True)


@router.put("/{user_id}/unban")
def unban_user(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"user": ["ban"]})),
):
    return _set_banned(db, request, user_id, current_user, False)


# Delete a user account
@router.delete("/{user_id}")
def delete_user(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission({"user": ["delete"]})),
):
    user = _get_user(db, user_id)
    _not_self(user, current_user, "delete")
    # Orders keep pointing at their creator; such accounts can only be banned
    if db.query(Order.id).filter(Order.created_by == user.id).first() is not None:
        raise BadRequestException("User has created orders and cannot be deleted, ban the account instead")

    email = user.email
    db.delete(user)
    db.commit()

    write_log(
        db, user_id=current_user.id, action="USER_DELETE", resource="users",
        ip=client_ip(request), meta={"id": user_id, "email": email},
    )
    request.app.state.cache.invalidate_all()
    return success_response(None, f"User {email} has been deleted")
