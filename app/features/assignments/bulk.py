"""
Bulk assignment of many users to one department.

Each user is validated on its own: failures are recorded per item and
never abort the batch, successes stage one SetUserAssignment intent.
"""
import enum
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional

from app.core.exceptions import DirectoryError, NotFoundError
from app.core.intents import SetUserAssignment
from app.features.assignments.planner import plan_assign
from app.features.departments.schemas import DepartmentSnapshot
from app.features.positions.schemas import PositionSnapshot
from app.features.users.schemas import UserSnapshot
from app.utils import get_logger


log = get_logger(__name__)


class BulkOutcome(str, enum.Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass(frozen=True)
class BulkItemFailure:
    user_id: str
    error_kind: str
    message: str


@dataclass
class BulkAssignReport:
    intents: List[SetUserAssignment] = field(default_factory=list)
    failures: List[BulkItemFailure] = field(default_factory=list)

    @property
    def applied(self) -> List[str]:
        return [intent.user_id for intent in self.intents]

    @property
    def success_count(self) -> int:
        return len(self.intents)

    @property
    def failed_count(self) -> int:
        return len(self.failures)

    @property
    def errors(self) -> Dict[str, str]:
        return {failure.user_id: failure.message for failure in self.failures}

    @property
    def outcome(self) -> BulkOutcome:
        if self.failed_count == 0 and self.success_count > 0:
            return BulkOutcome.SUCCESS
        if self.success_count > 0:
            return BulkOutcome.PARTIAL
        return BulkOutcome.FAILED


def unique_ids(user_ids: Iterable[str]) -> List[str]:
    """Drop repeated ids, keeping the first occurrence."""
    return list(dict.fromkeys(user_ids))


def bulk_assign(
    user_ids: Iterable[str],
    department: DepartmentSnapshot,
    users: Mapping[str, UserSnapshot],
    position: Optional[PositionSnapshot] = None,
    current_positions: Optional[Mapping[str, PositionSnapshot]] = None,
    reason: Optional[str] = None,
    effective_date: Optional[date] = None,
    max_items: Optional[int] = None,
) -> BulkAssignReport:
    """
    Plan the assignment of every id in ``user_ids`` to ``department``.

    ``users`` holds the snapshots the caller could load; an id missing from
    it fails with not_found. ``current_positions`` maps position ids to
    snapshots so a user keeping their position can be scope-checked.

    Raises ValueError for an empty batch or one larger than ``max_items``.
    """
    ids = unique_ids(user_ids)
    if not ids:
        raise ValueError("user_ids must not be empty")
    if max_items is not None and len(ids) > max_items:
        raise ValueError(f"At most {max_items} users can be assigned at once")

    current_positions = current_positions or {}
    report = BulkAssignReport()
    for user_id in ids:
        user = users.get(user_id)
        try:
            if user is None:
                raise NotFoundError(f"User {user_id} not found", subject_id=user_id)
            current = current_positions.get(user.position_id) if user.position_id else None
            intent = plan_assign(user, department, position, current, reason, effective_date)
        except DirectoryError as e:
            log.warning(f"Bulk assign skipped user={user_id}: {e.kind} {e.message}")
            report.failures.append(BulkItemFailure(user_id=user_id, error_kind=e.kind, message=e.message))
            continue
        report.intents.append(intent)

    log.info(
        f"Bulk assign to department={department.id}: "
        f"{report.success_count} succeeded, {report.failed_count} failed"
    )
    return report
