"""Pydantic schemas for API validation."""

from .directory import ActorResponse, AreaResponse, DepartmentResponse
from .document import DocumentCreate, DocumentResponse
from .issue import (
    AssignmentCreate,
    AssignmentResponse,
    IssueAdvance,
    IssueCreate,
    IssueResolve,
    IssueResponse,
)
from .notification import NotificationResponse
from .tender import (
    BidCreate,
    BidEvaluationCreate,
    BidEvaluationResponse,
    BidReject,
    BidResponse,
    TenderCreate,
    TenderResponse,
    TenderVerify,
)
from .work_progress import ProgressCreate, ProgressResponse, ProgressReview, ProgressUpdate

__all__ = [
    "ActorResponse",
    "AreaResponse",
    "DepartmentResponse",
    "IssueCreate",
    "IssueAdvance",
    "IssueResolve",
    "IssueResponse",
    "AssignmentCreate",
    "AssignmentResponse",
    "TenderCreate",
    "TenderVerify",
    "TenderResponse",
    "BidCreate",
    "BidReject",
    "BidResponse",
    "BidEvaluationCreate",
    "BidEvaluationResponse",
    "ProgressCreate",
    "ProgressUpdate",
    "ProgressReview",
    "ProgressResponse",
    "DocumentCreate",
    "DocumentResponse",
    "NotificationResponse",
]
