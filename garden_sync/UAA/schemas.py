# garden_sync/UAA/schemas.py
from pydantic import BaseModel, ConfigDict, EmailStr
from typing import Optional
import uuid
from datetime import datetime

class UserCreate(BaseModel):
    email: EmailStr
    username: str
    password: str

class UserLogin(BaseModel):
    email: EmailStr
    password: str

class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: EmailStr
    username: str
    is_active: bool
    created_at: datetime
    last_login: Optional[datetime] = None

class UserProfile(UserRead):
    garden_rank: Optional[int] = None
    seeds: int = 0

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
