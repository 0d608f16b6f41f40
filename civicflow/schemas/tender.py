"""Tender and bid Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from civicflow.models.bid import BidStatus, Recommendation
from civicflow.models.tender import TenderStage


class TenderCreate(BaseModel):
    """Schema for creating a tender."""

    department_id: int
    title: str = Field(..., max_length=1000)
    description: Optional[str] = None
    estimated_value: Optional[Decimal] = None
    bid_deadline: Optional[datetime] = None
    source_issue_id: Optional[int] = None


class TenderVerify(BaseModel):
    """Verification of completed work."""

    notes: Optional[str] = None


class TenderResponse(BaseModel):
    """Full tender response schema."""

    id: int
    title: str
    description: Optional[str] = None
    department_id: int
    source_issue_id: Optional[int] = None
    created_by: int
    estimated_value: Optional[Decimal] = None
    bid_deadline: Optional[datetime] = None
    workflow_stage: TenderStage
    awarded_contractor_id: Optional[int] = None
    awarded_amount: Optional[Decimal] = None
    awarded_at: Optional[datetime] = None
    work_started_at: Optional[datetime] = None
    work_completed_at: Optional[datetime] = None
    verification_notes: Optional[str] = None
    verified_by: Optional[int] = None
    verified_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class BidCreate(BaseModel):
    """Schema for submitting a bid."""

    amount: Decimal
    proposal: Optional[str] = None
    timeline_days: Optional[int] = None


class BidReject(BaseModel):
    """Rejection of a bid."""

    reason: Optional[str] = None


class BidResponse(BaseModel):
    """Bid response schema."""

    id: int
    tender_id: int
    bidder_id: int
    amount: Decimal
    proposal: Optional[str] = None
    timeline_days: Optional[int] = None
    status: BidStatus
    rejection_reason: Optional[str] = None
    decided_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BidEvaluationCreate(BaseModel):
    """Scores on a 0-100 scale; total defaults to the mean of the others."""

    technical_score: Optional[Decimal] = None
    financial_score: Optional[Decimal] = None
    experience_score: Optional[Decimal] = None
    total_score: Optional[Decimal] = None
    notes: Optional[str] = None
    recommendation: Optional[Recommendation] = None


class BidEvaluationResponse(BaseModel):
    """Bid evaluation response schema."""

    id: int
    bid_id: int
    evaluator_id: int
    technical_score: Optional[Decimal] = None
    financial_score: Optional[Decimal] = None
    experience_score: Optional[Decimal] = None
    total_score: Optional[Decimal] = None
    evaluation_notes: Optional[str] = None
    recommendation: Optional[Recommendation] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
