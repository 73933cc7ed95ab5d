"""Role based access policy for work order actions."""

from __future__ import annotations

import logging
from enum import Enum

from .domain import ADMIN_ROLE, PCP_ROLE, CallerContext
from .errors import ForbiddenError

logger = logging.getLogger(__name__)


class Action(str, Enum):
    CREATE = "create"
    FINALIZE = "finalize"
    DELETE = "delete"
    VALIDATE = "validate"
    REPORT_PRODUCTION = "report_production"
    PATCH = "patch"
    READ = "read"
    READ_LOGS = "read_logs"
    CREATE_LOG = "create_log"
    DELETE_LOG = "delete_log"
    RENAME_LOGS = "rename_logs"
    RUN_SWEEP = "run_sweep"


_PCP_ONLY = {Action.CREATE, Action.FINALIZE, Action.DELETE, Action.VALIDATE}
_PLANNING_OR_ADMIN = {
    Action.PATCH,
    Action.DELETE_LOG,
    Action.RENAME_LOGS,
    Action.RUN_SWEEP,
}
_ANY_ROLE = {Action.READ, Action.READ_LOGS, Action.CREATE_LOG}


def is_allowed(role: str, action: Action) -> bool:
    if action in _PCP_ONLY:
        return role == PCP_ROLE
    if action in _PLANNING_OR_ADMIN:
        return role in {PCP_ROLE, ADMIN_ROLE}
    if action == Action.REPORT_PRODUCTION:
        return role not in {PCP_ROLE, ADMIN_ROLE}
    return action in _ANY_ROLE


def require(caller: CallerContext, action: Action) -> None:
    if not is_allowed(caller.role, action):
        logger.warning(
            "Refused %s for caller %s with role %s", action.value, caller.id, caller.role
        )
        raise ForbiddenError(f"Role {caller.role!r} may not {action.value.replace('_', ' ')}")


__all__ = ["Action", "is_allowed", "require"]
