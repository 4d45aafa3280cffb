import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy import update
from sqlalchemy.orm.attributes import set_committed_value
from sqlmodel import Session, select, func, delete

from app.core.errors import DependencyError, NotFoundError
from app.models.requirement import Requirement
from app.models.requirement_approval import RequirementApproval
from app.models.requirement_item import RequirementItem
from app.services.events import EventBus, StatusChanged
from app.services.state_machine import TIMESTAMP_FIELDS, coerce_status

logger = logging.getLogger(__name__)


@dataclass
class RequirementFilters:
    status: Optional[str] = None
    priority: Optional[str] = None
    created_by: Optional[int] = None
    company_id: Optional[str] = None
    cost_center: Optional[str] = None


class RequirementRepository:
    """Store access for requirements, their items and their approvals.

    Writes happen inside ``batch()``, which commits once on exit and rolls
    back on error. Events recorded during a batch are published to the bus
    only after the commit succeeds.
    """

    def __init__(self, session: Session, bus: Optional[EventBus] = None):
        self.session = session
        self.bus = bus
        self._pending_events: list = []

    @contextmanager
    def batch(self):
        try:
            yield self
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            self._pending_events.clear()
            logger.error("Store write failed: %s", exc)
            raise DependencyError("Failed to write to the document store") from exc
        except Exception:
            self.session.rollback()
            self._pending_events.clear()
            raise
        self._flush_events()

    def record(self, event) -> None:
        self._pending_events.append(event)

    def _flush_events(self) -> None:
        events, self._pending_events = self._pending_events, []
        if self.bus is None:
            return
        for event in events:
            self.bus.publish(event, self)

    # --- requirements ---

    def get_requirement(self, requirement_id: int, refresh: bool = False) -> Requirement:
        try:
            requirement = self.session.get(Requirement, requirement_id)
            if requirement is not None and refresh:
                self.session.refresh(requirement)
        except SQLAlchemyError as exc:
            logger.error("Store read failed: %s", exc)
            raise DependencyError("Failed to read from the document store") from exc
        if requirement is None:
            raise NotFoundError("Requirement not found")
        return requirement

    def list_requirements(
        self, filters: RequirementFilters, limit: int, offset: int
    ) -> Tuple[List[Requirement], int]:
        conditions = []
        if filters.status:
            conditions.append(Requirement.status == filters.status)
        if filters.priority:
            conditions.append(Requirement.priority == filters.priority)
        if filters.created_by is not None:
            conditions.append(Requirement.created_by == filters.created_by)
        if filters.company_id:
            conditions.append(Requirement.company_id == filters.company_id)
        if filters.cost_center:
            conditions.append(Requirement.cost_center == filters.cost_center)

        try:
            rows = self.session.exec(
                select(Requirement)
                .where(*conditions)
                .order_by(Requirement.created_at.desc(), Requirement.id.desc())
                .offset(offset)
                .limit(limit)
            ).all()
            total = self.session.exec(
                select(func.count()).select_from(Requirement).where(*conditions)
            ).one()
        except SQLAlchemyError as exc:
            logger.error("Store read failed: %s", exc)
            raise DependencyError("Failed to read from the document store") from exc
        return list(rows), total

    def add_requirement(self, requirement: Requirement) -> Requirement:
        self.session.add(requirement)
        self.session.flush()
        return requirement

    def save(self, record):
        self.session.add(record)
        return record

    def transition(self, requirement: Requirement, to_status, expected_version: int, **fields) -> bool:
        """Compare-and-swap the requirement's status.

        The write only lands if the stored version still equals
        ``expected_version``. Returns False when another writer got there first.
        """
        to_status = coerce_status(to_status)
        requirement_id = requirement.id
        from_status = requirement.status
        now = datetime.utcnow()
        values = dict(fields)
        values.update(status=to_status.value, version=expected_version + 1, updated_at=now)
        stamp = TIMESTAMP_FIELDS.get(to_status)
        if stamp:
            values[stamp] = now

        result = self.session.exec(
            update(Requirement)
            .where(Requirement.id == requirement_id, Requirement.version == expected_version)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        self.session.expire(requirement)
        self.record(StatusChanged(requirement_id, str(from_status), to_status.value))
        return True

    def claim(self, requirement: Requirement, expected_version: int) -> bool:
        """Bump the version if it still equals ``expected_version``.

        Ties a non-status write (edits, items, approvals) to the state it was
        checked against. Returns False when the requirement moved on.
        """
        result = self.session.exec(
            update(Requirement)
            .where(Requirement.id == requirement.id, Requirement.version == expected_version)
            .values(version=expected_version + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False
        # el UPDATE no pasa por el ORM
        set_committed_value(requirement, "version", expected_version + 1)
        return True

    def delete_cascade(self, requirement: Requirement) -> None:
        self.session.exec(
            delete(RequirementItem).where(RequirementItem.requirement_id == requirement.id)
        )
        self.session.exec(
            delete(RequirementApproval).where(RequirementApproval.requirement_id == requirement.id)
        )
        self.session.delete(requirement)

    # --- items ---

    def list_items(self, requirement_id: int) -> List[RequirementItem]:
        return list(
            self.session.exec(
                select(RequirementItem)
                .where(RequirementItem.requirement_id == requirement_id)
                .order_by(RequirementItem.id)
            ).all()
        )

    def count_items(self, requirement_id: int) -> int:
        return self.session.exec(
            select(func.count())
            .select_from(RequirementItem)
            .where(RequirementItem.requirement_id == requirement_id)
        ).one()

    def get_item(self, requirement_id: int, item_id: int) -> RequirementItem:
        item = self.session.get(RequirementItem, item_id)
        if item is None or item.requirement_id != requirement_id:
            raise NotFoundError("Requirement item not found")
        return item

    def add_item(self, item: RequirementItem) -> RequirementItem:
        self.session.add(item)
        self.session.flush()
        return item

    def delete_item(self, item: RequirementItem) -> None:
        self.session.delete(item)

    # --- approvals ---

    def list_approvals(self, requirement_id: int, round: Optional[int] = None) -> List[RequirementApproval]:
        statement = select(RequirementApproval).where(
            RequirementApproval.requirement_id == requirement_id
        )
        if round is not None:
            statement = statement.where(RequirementApproval.round == round)
        return list(self.session.exec(statement.order_by(RequirementApproval.id)).all())

    def add_approval(self, approval: RequirementApproval) -> RequirementApproval:
        self.session.add(approval)
        self.session.flush()
        return approval
