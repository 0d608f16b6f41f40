"""Work progress Pydantic schemas."""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from civicflow.models.work_progress import ProgressStatus, ProgressType


class ProgressCreate(BaseModel):
    """Schema for filing a progress entry."""

    progress_type: ProgressType
    title: str = Field(..., max_length=500)
    description: str
    progress_percentage: int = 0
    status: ProgressStatus = ProgressStatus.SUBMITTED
    is_milestone: bool = False
    milestone_name: Optional[str] = Field(None, max_length=255)
    images: list[str] = []
    documents: list[str] = []
    materials_used: list[str] = []
    location_notes: Optional[str] = None
    quality_notes: Optional[str] = None
    labor_details: Optional[str] = None
    challenges_faced: Optional[str] = None
    next_steps: Optional[str] = None
    estimated_completion_date: Optional[date] = None
    requires_verification: bool = False
    extra: dict[str, Any] = {}


class ProgressUpdate(BaseModel):
    """Changes to a draft entry. Only fields that are set are applied."""

    title: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = None
    progress_percentage: Optional[int] = None
    is_milestone: Optional[bool] = None
    milestone_name: Optional[str] = Field(None, max_length=255)
    images: Optional[list[str]] = None
    documents: Optional[list[str]] = None
    materials_used: Optional[list[str]] = None
    location_notes: Optional[str] = None
    quality_notes: Optional[str] = None
    labor_details: Optional[str] = None
    challenges_faced: Optional[str] = None
    next_steps: Optional[str] = None
    estimated_completion_date: Optional[date] = None
    requires_verification: Optional[bool] = None
    extra: Optional[dict[str, Any]] = None


class ProgressReview(BaseModel):
    """Review decision on a submitted entry."""

    decision: ProgressStatus
    notes: Optional[str] = None


class ProgressResponse(BaseModel):
    """Progress entry response schema."""

    id: int
    tender_id: int
    contractor_id: int
    progress_type: ProgressType
    title: str
    description: str
    progress_percentage: int
    status: ProgressStatus
    is_milestone: bool
    milestone_name: Optional[str] = None
    images: list[str]
    documents: list[str]
    materials_used: list[str]
    location_notes: Optional[str] = None
    quality_notes: Optional[str] = None
    labor_details: Optional[str] = None
    challenges_faced: Optional[str] = None
    next_steps: Optional[str] = None
    estimated_completion_date: Optional[date] = None
    requires_verification: bool
    verified_by: Optional[int] = None
    verified_at: Optional[datetime] = None
    verification_notes: Optional[str] = None
    extra: dict[str, Any]
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
