"""Issue and assignment Pydantic schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from civicflow.models.assignment import AssignmentStatus, AssignmentType
from civicflow.models.issue import IssuePriority, IssueStage


class IssueCreate(BaseModel):
    """Schema for reporting an issue."""

    title: str = Field(..., max_length=500)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    location: Optional[str] = Field(None, max_length=500)
    priority: IssuePriority = IssuePriority.MEDIUM


class IssueAdvance(BaseModel):
    """Request to move an issue one stage forward."""

    target: IssueStage


class IssueResolve(BaseModel):
    """Request to resolve an issue under department review."""

    notes: str


class IssueResponse(BaseModel):
    """Issue response schema."""

    id: int
    reporter_id: int
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    priority: IssuePriority
    workflow_stage: IssueStage
    assigned_area_id: Optional[int] = None
    assigned_department_id: Optional[int] = None
    current_assignee_id: Optional[int] = None
    final_resolution_notes: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AssignmentCreate(BaseModel):
    """Request to delegate an issue to the next tier."""

    assignment_type: AssignmentType
    assigned_to: Optional[int] = None
    area_id: Optional[int] = None
    department_id: Optional[int] = None
    notes: Optional[str] = None


class AssignmentResponse(BaseModel):
    """Assignment response schema."""

    id: int
    issue_id: int
    assigned_by: int
    assigned_to: Optional[int] = None
    assigned_area_id: Optional[int] = None
    assigned_department_id: Optional[int] = None
    assignment_type: AssignmentType
    assignment_notes: Optional[str] = None
    status: AssignmentStatus
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
