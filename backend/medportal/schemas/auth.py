from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from medportal.roles import Role


class LoginRequest(BaseModel):
    email: str
    password: str


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=1)
    role: Role


class SessionOut(BaseModel):
    id: str
    email: str
    role: Role
    name: str
    avatar: Optional[str] = None
    is_demo: bool = False


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    session: SessionOut
    notifications: list[dict] = []
