from datetime import datetime
from typing import Optional

from pydantic import Field

from osoul.schemas.common import CamelModel


class BranchCreate(CamelModel):
    branch_code: str = Field(..., min_length=1, max_length=20)
    branch_name: str = Field(..., min_length=1, max_length=255)
    region: Optional[str] = Field(None, max_length=100)
    city: Optional[str] = Field(None, max_length=100)
    manager_id: Optional[int] = None


class BranchUpdate(CamelModel):
    branch_name: Optional[str] = Field(None, min_length=1, max_length=255)
    region: Optional[str] = Field(None, max_length=100)
    city: Optional[str] = Field(None, max_length=100)
    manager_id: Optional[int] = None
    is_active: Optional[bool] = None


class BranchOut(CamelModel):
    id: int
    branch_code: str
    branch_name: str
    region: Optional[str] = None
    city: Optional[str] = None
    manager_id: Optional[int] = None
    manager_name: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
