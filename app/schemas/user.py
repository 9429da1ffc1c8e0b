from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from app.models.user import Role, UserStatus


class UserCreate(BaseModel):
    email: EmailStr
    full_name: str = Field(min_length=1, max_length=200)
    department: str | None = Field(default=None, max_length=100)
    role: Role = Role.EMPLOYEE
    manager_id: int | None = None


class UserUpdate(BaseModel):
    full_name: str | None = Field(default=None, min_length=1, max_length=200)
    department: str | None = Field(default=None, max_length=100)
    role: Role | None = None
    status: UserStatus | None = None
    manager_id: int | None = None
    clear_manager: bool = False


class UserOut(BaseModel):
    id: int
    email: str
    full_name: str
    department: str | None
    role: str
    status: str
    manager_id: int | None
    created_at: datetime
    updated_at: datetime
