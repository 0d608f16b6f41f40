"""Workflow services."""

from .access_control import Action, Decision, Rule, authorize, ensure_authorized
from .delegation_service import DelegationService, delegation_service
from .directory_service import DirectoryService, directory_service
from .dispatcher import EntityKind, PropagationDispatcher, TransitionEvent, dispatcher
from .document_service import DocumentService, document_service
from .issue_workflow import IssueWorkflow, issue_workflow
from .notification_service import NotificationService, notification_service
from .query_service import QueryService, query_service
from .tender_workflow import TenderWorkflow, tender_workflow
from .transports import EmailTransport, LogTransport, NotificationTransport, WebhookTransport, get_transport
from .work_progress_service import WorkProgressService, work_progress_service

__all__ = [
    "Action",
    "Decision",
    "Rule",
    "authorize",
    "ensure_authorized",
    "DirectoryService",
    "directory_service",
    "DelegationService",
    "delegation_service",
    "EntityKind",
    "TransitionEvent",
    "PropagationDispatcher",
    "dispatcher",
    "IssueWorkflow",
    "issue_workflow",
    "TenderWorkflow",
    "tender_workflow",
    "WorkProgressService",
    "work_progress_service",
    "DocumentService",
    "document_service",
    "QueryService",
    "query_service",
    "NotificationService",
    "notification_service",
    "NotificationTransport",
    "LogTransport",
    "WebhookTransport",
    "EmailTransport",
    "get_transport",
]
