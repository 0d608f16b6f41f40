"""Access control evaluator.

Every workflow transition funnels through ``authorize``: one ruleset keyed by
the requested action, evaluated against the actor's role and relationship to
the target entity. Rules return a ``Decision``; they never raise.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from civicflow.errors import Unauthorized
from civicflow.models import (
    CONTRACTOR_DOCUMENT_TYPES,
    Actor,
    ActorRole,
    Assignment,
    AssignmentType,
    Bid,
    BidStatus,
    Document,
    Issue,
    Tender,
    TenderStage,
    WorkProgressEntry,
)

logger = logging.getLogger(__name__)


class Action(str, Enum):
    """Transitions and mutations gated by access control."""

    # Issue
    ISSUE_ADVANCE = "issue.advance"
    ISSUE_START_WORK = "issue.start_work"
    ISSUE_SUBMIT_COMPLETION = "issue.submit_completion"
    ISSUE_RESOLVE = "issue.resolve"

    # Assignment
    ASSIGNMENT_CREATE = "assignment.create"
    ASSIGNMENT_COMPLETE = "assignment.complete"
    ASSIGNMENT_CANCEL = "assignment.cancel"

    # Tender
    TENDER_CREATE = "tender.create"
    TENDER_TRANSITION = "tender.transition"

    # Bid
    BID_SUBMIT = "bid.submit"
    BID_WITHDRAW = "bid.withdraw"
    BID_EVALUATE = "bid.evaluate"
    BID_REJECT = "bid.reject"
    BID_ACCEPT = "bid.accept"

    # Work progress
    PROGRESS_SUBMIT = "progress.submit"
    PROGRESS_UPDATE = "progress.update"
    PROGRESS_REVIEW = "progress.review"

    # Documents
    DOCUMENT_UPLOAD = "document.upload"


class Rule(str, Enum):
    """Stable reason codes returned on denial."""

    ACTOR_INACTIVE = "actor_inactive"
    NOT_ISSUE_MANAGER = "not_issue_manager"
    ASSIGNER_MISMATCH = "assigner_mismatch"
    ROLE_CANNOT_DELEGATE = "role_cannot_delegate"
    NOT_ASSIGNMENT_PARTY = "not_assignment_party"
    NOT_TENDER_MANAGER = "not_tender_manager"
    TENDER_NOT_IN_REVIEW = "tender_not_in_review"
    NOT_CONTRACTOR = "not_contractor"
    NOT_BIDDER = "not_bidder"
    NOT_ENTRY_OWNER = "not_entry_owner"
    NOT_AWARDED_CONTRACTOR = "not_awarded_contractor"
    NOT_REVIEWER = "not_reviewer"
    UPLOADER_MISMATCH = "uploader_mismatch"
    NOT_DOCUMENT_UPLOADER = "not_document_uploader"
    UNKNOWN_ACTION = "unknown_action"


@dataclass(frozen=True)
class Decision:
    """Outcome of an authorization check."""

    allowed: bool
    reason: Rule | None = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: Rule) -> "Decision":
        return cls(allowed=False, reason=reason)


# Role empowered to create each tier of assignment
DELEGATING_ROLE: dict[AssignmentType, ActorRole] = {
    AssignmentType.ADMIN_TO_AREA: ActorRole.PLATFORM_ADMIN,
    AssignmentType.AREA_TO_DEPARTMENT: ActorRole.AREA_SUPERVISOR,
    AssignmentType.DEPARTMENT_TO_CONTRACTOR: ActorRole.DEPARTMENT_ADMIN,
}

# Issue transitions the current assignee may perform on their own work
ASSIGNEE_ISSUE_ACTIONS = frozenset({Action.ISSUE_START_WORK, Action.ISSUE_SUBMIT_COMPLETION})

ACCEPTANCE_STAGES = frozenset({TenderStage.BIDDING_CLOSED, TenderStage.UNDER_REVIEW})


def _manages_tender(actor: Actor, tender: Tender) -> bool:
    return actor.is_platform_admin or actor.administers_department(tender.department_id)


def _issue_rule(actor: Actor, issue: Issue, action: Action, context: dict) -> Decision:
    if actor.is_platform_admin:
        return Decision.allow()
    if actor.supervises_area(issue.assigned_area_id):
        return Decision.allow()
    if actor.administers_department(issue.assigned_department_id):
        return Decision.allow()
    if action in ASSIGNEE_ISSUE_ACTIONS and actor.id == issue.current_assignee_id:
        return Decision.allow()
    return Decision.deny(Rule.NOT_ISSUE_MANAGER)


def _assignment_create_rule(actor: Actor, assignment: Assignment, action: Action, context: dict) -> Decision:
    issue: Issue = context["issue"]
    if actor.id != assignment.assigned_by:
        return Decision.deny(Rule.ASSIGNER_MISMATCH)
    if actor.role != DELEGATING_ROLE[assignment.assignment_type]:
        return Decision.deny(Rule.ROLE_CANNOT_DELEGATE)
    if assignment.assignment_type == AssignmentType.AREA_TO_DEPARTMENT:
        if not actor.supervises_area(issue.assigned_area_id):
            return Decision.deny(Rule.ROLE_CANNOT_DELEGATE)
    if assignment.assignment_type == AssignmentType.DEPARTMENT_TO_CONTRACTOR:
        if not actor.administers_department(issue.assigned_department_id):
            return Decision.deny(Rule.ROLE_CANNOT_DELEGATE)
    return Decision.allow()


def _assignment_close_rule(actor: Actor, assignment: Assignment, action: Action, context: dict) -> Decision:
    if actor.is_platform_admin or actor.id == assignment.assigned_by:
        return Decision.allow()
    if action == Action.ASSIGNMENT_COMPLETE and actor.id == assignment.assigned_to:
        return Decision.allow()
    return Decision.deny(Rule.NOT_ASSIGNMENT_PARTY)


def _tender_rule(actor: Actor, tender: Tender, action: Action, context: dict) -> Decision:
    if _manages_tender(actor, tender):
        return Decision.allow()
    return Decision.deny(Rule.NOT_TENDER_MANAGER)


def _bid_submit_rule(actor: Actor, bid: Bid, action: Action, context: dict) -> Decision:
    if actor.role != ActorRole.CONTRACTOR:
        return Decision.deny(Rule.NOT_CONTRACTOR)
    if actor.id != bid.bidder_id:
        return Decision.deny(Rule.NOT_BIDDER)
    return Decision.allow()


def _bid_withdraw_rule(actor: Actor, bid: Bid, action: Action, context: dict) -> Decision:
    if actor.id != bid.bidder_id:
        return Decision.deny(Rule.NOT_BIDDER)
    return Decision.allow()


def _bid_manage_rule(actor: Actor, bid: Bid, action: Action, context: dict) -> Decision:
    tender: Tender = context["tender"]
    if not _manages_tender(actor, tender):
        return Decision.deny(Rule.NOT_TENDER_MANAGER)
    if action == Action.BID_ACCEPT and bid.status != BidStatus.ACCEPTED:
        if tender.workflow_stage not in ACCEPTANCE_STAGES:
            return Decision.deny(Rule.TENDER_NOT_IN_REVIEW)
    return Decision.allow()


def _progress_owner_rule(actor: Actor, entry: WorkProgressEntry, action: Action, context: dict) -> Decision:
    tender: Tender = context["tender"]
    if actor.id != entry.contractor_id:
        return Decision.deny(Rule.NOT_ENTRY_OWNER)
    if actor.id != tender.awarded_contractor_id:
        return Decision.deny(Rule.NOT_AWARDED_CONTRACTOR)
    return Decision.allow()


def _progress_review_rule(actor: Actor, entry: WorkProgressEntry, action: Action, context: dict) -> Decision:
    tender: Tender = context["tender"]
    if _manages_tender(actor, tender):
        return Decision.allow()
    return Decision.deny(Rule.NOT_REVIEWER)


def _document_upload_rule(actor: Actor, document: Document, action: Action, context: dict) -> Decision:
    tender: Tender = context["tender"]
    if actor.id != document.uploaded_by:
        return Decision.deny(Rule.UPLOADER_MISMATCH)
    if _manages_tender(actor, tender):
        return Decision.allow()
    if actor.id == tender.awarded_contractor_id and document.document_type in CONTRACTOR_DOCUMENT_TYPES:
        return Decision.allow()
    return Decision.deny(Rule.NOT_DOCUMENT_UPLOADER)


RuleFn = Callable[[Actor, object, Action, dict], Decision]

RULES: dict[Action, RuleFn] = {
    Action.ISSUE_ADVANCE: _issue_rule,
    Action.ISSUE_START_WORK: _issue_rule,
    Action.ISSUE_SUBMIT_COMPLETION: _issue_rule,
    Action.ISSUE_RESOLVE: _issue_rule,
    Action.ASSIGNMENT_CREATE: _assignment_create_rule,
    Action.ASSIGNMENT_COMPLETE: _assignment_close_rule,
    Action.ASSIGNMENT_CANCEL: _assignment_close_rule,
    Action.TENDER_CREATE: _tender_rule,
    Action.TENDER_TRANSITION: _tender_rule,
    Action.BID_SUBMIT: _bid_submit_rule,
    Action.BID_WITHDRAW: _bid_withdraw_rule,
    Action.BID_EVALUATE: _bid_manage_rule,
    Action.BID_REJECT: _bid_manage_rule,
    Action.BID_ACCEPT: _bid_manage_rule,
    Action.PROGRESS_SUBMIT: _progress_owner_rule,
    Action.PROGRESS_UPDATE: _progress_owner_rule,
    Action.PROGRESS_REVIEW: _progress_review_rule,
    Action.DOCUMENT_UPLOAD: _document_upload_rule,
}


def authorize(actor: Actor, entity: object, action: Action, **context) -> Decision:
    """
    Decide whether ``actor`` may perform ``action`` on ``entity``.

    Args:
        actor: Acting identity
        entity: Target entity (may be unsaved for creation actions)
        action: Requested transition
        **context: Related entities the rule needs (``issue=``, ``tender=``)

    Returns:
        Decision with a reason code when denied
    """
    if not actor.is_active:
        return Decision.deny(Rule.ACTOR_INACTIVE)
    rule = RULES.get(action)
    if rule is None:
        return Decision.deny(Rule.UNKNOWN_ACTION)
    return rule(actor, entity, action, context)


def ensure_authorized(actor: Actor, entity: object, action: Action, **context) -> None:
    """
    Raise Unauthorized unless ``authorize`` allows the action.

    Raises:
        Unauthorized: Carrying the failing rule code
    """
    decision = authorize(actor, entity, action, **context)
    if not decision.allowed:
        logger.warning(
            f"Denied {action.value} for actor {actor.id} on {entity!r}: {decision.reason.value}"
        )
        raise Unauthorized(decision.reason.value)
