"""Handlers reacting to item and approval changes.

Both are idempotent: running them twice for the same event leaves the
requirement in the same state.
"""

import logging

from app.core.config import Settings
from app.models.enums import RequirementStatus
from app.services.events import ApprovalAdded, EventBus, ItemsChanged, StatusChanged
from app.services.pricing import calculate_total
from app.services.requirement_repository import RequirementRepository
from app.services.state_machine import evaluate_approvals

logger = logging.getLogger(__name__)
settings = Settings()


def recalculate_total(event: ItemsChanged, repo: RequirementRepository) -> None:
    with repo.batch():
        requirement = repo.get_requirement(event.requirement_id, refresh=True)
        summary = calculate_total(repo.list_items(event.requirement_id), settings.default_currency)
        requirement.total_price = summary.total_price
        requirement.currency = summary.currency
        repo.save(requirement)
    logger.info(
        "Requirement %s total recalculated: %.2f %s",
        event.requirement_id,
        summary.total_price,
        summary.currency,
    )


def apply_approval_outcome(event: ApprovalAdded, repo: RequirementRepository) -> None:
    """Re-read the current round's approvals and move the requirement on.

    The status write is a compare-and-swap on the requirement version; a lost
    race re-reads the approval set and tries again. The approval is already
    committed when this runs, so running out of retries leaves the
    requirement pending for the next recomputation instead of failing.
    """
    for attempt in range(settings.approval_cas_retries):
        with repo.batch():
            requirement = repo.get_requirement(event.requirement_id, refresh=True)
            if requirement.status != RequirementStatus.PENDING_APPROVAL.value:
                return
            decisions = [
                a.status
                for a in repo.list_approvals(requirement.id, round=requirement.submission_round)
            ]
            outcome = evaluate_approvals(decisions)
            if outcome is None:
                logger.info(
                    "Requirement %s stays pending with %d decision(s)",
                    requirement.id,
                    len(decisions),
                )
                return
            if repo.transition(requirement, outcome, requirement.version):
                return
        logger.warning(
            "Concurrent status write on requirement %s, retry %d",
            event.requirement_id,
            attempt + 1,
        )
    logger.error(
        "Gave up recomputing approvals for requirement %s after %d attempts",
        event.requirement_id,
        settings.approval_cas_retries,
    )


def log_status_change(event: StatusChanged, repo: RequirementRepository) -> None:
    logger.info(
        "Requirement %s moved from %s to %s",
        event.requirement_id,
        event.from_status,
        event.to_status,
    )


def build_event_bus() -> EventBus:
    bus = EventBus()
    bus.subscribe(ItemsChanged, recalculate_total)
    bus.subscribe(ApprovalAdded, apply_approval_outcome)
    bus.subscribe(StatusChanged, log_status_change)
    return bus
