# backend/schemas/user.py
from datetime import datetime
from typing import Literal, Optional

from pydantic import EmailStr, Field

from schemas.common import ORMBase, PageQuery

Role = Literal["admin", "user", "sales"]


# Shared properties for user models
class UserBase(ORMBase):
    email: EmailStr


# Schema for user authentication credentials
class UserLogin(UserBase):
    password: str


# Schema for user registration requests (new accounts always get role "user")
class UserCreate(UserBase):
    password: str = Field(..., min_length=8)
    name: str = Field(..., min_length=1, max_length=255)


# Output schema for user profile details
class UserResponse(ORMBase):
    id: int
    name: str
    email: str
    role: str
    banned: bool
    created_at: datetime


# Schema for JWT authentication token response
class Token(ORMBase):
    access_token: str
    token_type: str = "bearer"
    user: Optional[UserResponse] = None


# Schema for administrative role updates
class RoleUpdate(ORMBase):
    role: Role


class UserQuery(PageQuery):
    sort_by: Literal["id", "name", "email", "createdAt"] = "createdAt"
    role: Optional[Role] = None
