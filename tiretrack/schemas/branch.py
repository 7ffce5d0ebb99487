# tiretrack/schemas/branch.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class BranchCreate(BaseModel):
    name: str = Field(min_length=1)
    code: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None


class BranchUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    code: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    is_active: Optional[bool] = None


class BranchOut(BaseModel):
    id: int
    name: str
    code: Optional[str]
    address: Optional[str]
    phone: Optional[str]
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
