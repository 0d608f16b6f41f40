"""Directory Pydantic schemas: actors, areas and departments."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from civicflow.models.actor import ActorRole


class ActorResponse(BaseModel):
    """Actor as seen by other actors."""

    id: int
    email: str
    full_name: Optional[str] = None
    role: ActorRole
    assigned_area_id: Optional[int] = None
    assigned_department_id: Optional[int] = None
    is_active: bool

    model_config = ConfigDict(from_attributes=True)


class AreaResponse(BaseModel):
    """Area response schema."""

    id: int
    name: str
    code: str
    description: Optional[str] = None
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DepartmentResponse(BaseModel):
    """Department response schema."""

    id: int
    name: str
    code: str
    category: str
    description: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
