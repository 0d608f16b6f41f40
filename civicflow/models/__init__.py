"""SQLAlchemy models."""

from .actor import Actor, ActorRole
from .area import Area, Department
from .assignment import Assignment, AssignmentStatus, AssignmentType
from .base import Base
from .bid import LIVE_BID_STATUSES, Bid, BidEvaluation, BidStatus, Recommendation
from .document import CONTRACTOR_DOCUMENT_TYPES, Document, DocumentType
from .issue import Issue, IssuePriority, IssueStage
from .notification import NotificationEvent, NotificationKind, NotificationStatus
from .tender import AWARDED_STAGES, Tender, TenderStage
from .work_progress import REVIEW_DECISIONS, ProgressStatus, ProgressType, WorkProgressEntry

__all__ = [
    "Base",
    "Actor",
    "ActorRole",
    "Area",
    "Department",
    "Issue",
    "IssuePriority",
    "IssueStage",
    "Assignment",
    "AssignmentStatus",
    "AssignmentType",
    "Tender",
    "TenderStage",
    "AWARDED_STAGES",
    "Bid",
    "BidStatus",
    "BidEvaluation",
    "Recommendation",
    "LIVE_BID_STATUSES",
    "WorkProgressEntry",
    "ProgressType",
    "ProgressStatus",
    "REVIEW_DECISIONS",
    "Document",
    "DocumentType",
    "CONTRACTOR_DOCUMENT_TYPES",
    "NotificationEvent",
    "NotificationKind",
    "NotificationStatus",
]
