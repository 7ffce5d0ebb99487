# tiretrack/schemas/auth.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class OtpRequest(BaseModel):
    phone: str = Field(min_length=9, max_length=20)


class OtpRequested(BaseModel):
    success: bool
    phone_masked: str
    expires_in_seconds: int
    cooldown_seconds: int


class OtpVerify(BaseModel):
    phone: str = Field(min_length=9, max_length=20)
    code: str = Field(min_length=4, max_length=10)


class AdminLogin(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class SessionOut(BaseModel):
    token: str
    kind: str
    expires_at: datetime
    owner_id: Optional[int] = None
    admin_user_id: Optional[int] = None

    class Config:
        from_attributes = True
