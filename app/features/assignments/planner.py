"""
Single-user assignment operations.

Each planner validates one change against snapshots and returns the
write intent for it, raising the first rule violation.
"""
from datetime import date
from typing import Optional

from app.core.exceptions import NotFoundError
from app.core.intents import SetUserAssignment, Unassign
from app.features.assignments.validator import check_position_in_department, check_user_assignment
from app.features.departments.schemas import DepartmentSnapshot
from app.features.positions.schemas import PositionSnapshot
from app.features.users.schemas import UserSnapshot
from app.utils import get_logger


log = get_logger(__name__)


def plan_assign(
    user: UserSnapshot,
    department: DepartmentSnapshot,
    position: Optional[PositionSnapshot] = None,
    current_position: Optional[PositionSnapshot] = None,
    reason: Optional[str] = None,
    effective_date: Optional[date] = None,
) -> SetUserAssignment:
    """
    Assign a user to a department and optionally a position.

    Without a new position the user keeps their current one, provided it
    fits the target department.
    """
    error = check_user_assignment(user, department, position, current_position)
    if error is not None:
        raise error

    position_id = position.id if position is not None else user.position_id
    log.debug(f"Planned assignment user={user.id} department={department.id} position={position_id}")
    return SetUserAssignment(
        user_id=user.id,
        department_id=department.id,
        position_id=position_id,
        reason=reason,
        effective_date=effective_date,
    )


def plan_transfer(
    user: UserSnapshot,
    new_department: DepartmentSnapshot,
    new_position: Optional[PositionSnapshot] = None,
    current_position: Optional[PositionSnapshot] = None,
    reason: Optional[str] = "transfer",
    effective_date: Optional[date] = None,
) -> SetUserAssignment:
    """Move an assigned user to another department."""
    if user.department_id is None:
        raise NotFoundError(f"User {user.name or user.id} has no current department", subject_id=user.id)
    return plan_assign(user, new_department, new_position, current_position, reason, effective_date)


def plan_promote(
    user: UserSnapshot,
    new_position: PositionSnapshot,
    reason: Optional[str] = "promotion",
    effective_date: Optional[date] = None,
) -> SetUserAssignment:
    """Give a user a new position inside their current department."""
    if user.department_id is None:
        raise NotFoundError(f"User {user.name or user.id} has no current department", subject_id=user.id)
    error = check_position_in_department(new_position, user.department_id)
    if error is not None:
        raise error
    return SetUserAssignment(
        user_id=user.id,
        department_id=user.department_id,
        position_id=new_position.id,
        reason=reason,
        effective_date=effective_date,
    )


def plan_unassign(
    user: UserSnapshot,
    reason: Optional[str] = None,
    end_date: Optional[date] = None,
) -> Unassign:
    """Clear department and position together."""
    if user.department_id is None and user.position_id is None:
        raise NotFoundError(f"User {user.name or user.id} has no current assignment", subject_id=user.id)
    return Unassign(user_id=user.id, reason=reason, end_date=end_date)
