"""Fixed stage graphs for issues and tenders.

Pure functions over model instances: they validate a requested stage change
and apply it in memory. Persistence, authorization and cascades belong to
the workflow services.
"""

from datetime import datetime, timezone

from civicflow.errors import InvalidTransition
from civicflow.models import Issue, IssueStage, Tender, TenderStage

ISSUE_STAGE_ORDER: tuple[IssueStage, ...] = (
    IssueStage.REPORTED,
    IssueStage.AREA_REVIEW,
    IssueStage.DEPARTMENT_ASSIGNED,
    IssueStage.CONTRACTOR_ASSIGNED,
    IssueStage.IN_PROGRESS,
    IssueStage.DEPARTMENT_REVIEW,
    IssueStage.RESOLVED,
)

TENDER_STAGE_ORDER: tuple[TenderStage, ...] = (
    TenderStage.CREATED,
    TenderStage.BIDDING_OPEN,
    TenderStage.BIDDING_CLOSED,
    TenderStage.UNDER_REVIEW,
    TenderStage.AWARDED,
    TenderStage.WORK_IN_PROGRESS,
    TenderStage.WORK_COMPLETED,
    TenderStage.VERIFIED,
    TenderStage.CLOSED,
)

# Issue stages from which bid acceptance may jump straight to in_progress
PRE_AWARD_ISSUE_STAGES = frozenset(ISSUE_STAGE_ORDER[:4])


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def issue_rank(stage: IssueStage) -> int:
    return ISSUE_STAGE_ORDER.index(stage)


def tender_rank(stage: TenderStage) -> int:
    return TENDER_STAGE_ORDER.index(stage)


def next_issue_stage(stage: IssueStage) -> IssueStage | None:
    """Following stage, or None for the terminal stage."""
    rank = issue_rank(stage)
    if rank + 1 < len(ISSUE_STAGE_ORDER):
        return ISSUE_STAGE_ORDER[rank + 1]
    return None


def next_tender_stage(stage: TenderStage) -> TenderStage | None:
    rank = tender_rank(stage)
    if rank + 1 < len(TENDER_STAGE_ORDER):
        return TENDER_STAGE_ORDER[rank + 1]
    return None


def advance_issue(issue: Issue, target: IssueStage) -> IssueStage:
    """
    Move an issue exactly one stage forward.

    Returns:
        The stage the issue left

    Raises:
        InvalidTransition: If target is not the next stage
    """
    current = issue.workflow_stage
    if issue.is_resolved:
        raise InvalidTransition(f"Issue {issue.id} is resolved and can no longer change")
    if next_issue_stage(current) != target:
        raise InvalidTransition(
            f"Issue {issue.id} cannot move from {current.value} to {target.value}"
        )
    issue.workflow_stage = target
    return current


def raise_issue_to(issue: Issue, target: IssueStage) -> IssueStage:
    """
    Move an issue forward to ``target`` as a side effect of delegation.

    Delegation may repeat a tier (reassignment), so staying put is legal;
    moving backwards never is.
    """
    current = issue.workflow_stage
    if issue.is_resolved:
        raise InvalidTransition(f"Issue {issue.id} is resolved and can no longer change")
    if issue_rank(target) < issue_rank(current):
        raise InvalidTransition(
            f"Issue {issue.id} cannot regress from {current.value} to {target.value}"
        )
    issue.workflow_stage = target
    return current


def jump_issue_to_in_progress(issue: Issue) -> bool:
    """
    Move an issue from any pre-award stage directly to in_progress.

    Returns:
        True if the stage changed, False if the issue was already at or past
        in_progress (the jump never regresses)
    """
    if issue.workflow_stage not in PRE_AWARD_ISSUE_STAGES:
        return False
    issue.workflow_stage = IssueStage.IN_PROGRESS
    return True


def advance_tender(tender: Tender, target: TenderStage) -> TenderStage:
    """
    Move a tender exactly one stage forward.

    Returns:
        The stage the tender left

    Raises:
        InvalidTransition: If target is not the next stage
    """
    current = tender.workflow_stage
    if next_tender_stage(current) != target:
        raise InvalidTransition(
            f"Tender {tender.id} cannot move from {current.value} to {target.value}"
        )
    tender.workflow_stage = target
    return current


def require_tender_stage(tender: Tender, *stages: TenderStage) -> None:
    """Raise InvalidTransition unless the tender is in one of ``stages``."""
    if tender.workflow_stage not in stages:
        allowed = ", ".join(s.value for s in stages)
        raise InvalidTransition(
            f"Tender {tender.id} is {tender.workflow_stage.value}; expected one of: {allowed}"
        )
