"""
Permission identifier normalization.

Identifiers look like ``<action>_<module>`` (``edit_hrm_departments``).
The first token is the action verb, mapped through a synonym table onto
one of seven canonical actions; everything after the first underscore is
the module path.
"""
from typing import Dict, NamedTuple, Optional

from app.utils import get_logger


log = get_logger(__name__)


# Canonical actions, in the order they appear in an action matrix
ACTIONS = ("read", "write", "create", "delete", "submit", "report", "export")

ACTION_SYNONYMS: Dict[str, str] = {
    "view": "read",
    "read": "read",
    "access": "read",
    "edit": "write",
    "update": "write",
    "write": "write",
    "create": "create",
    "add": "create",
    "store": "create",
    "delete": "delete",
    "destroy": "delete",
    "remove": "delete",
    "submit": "submit",
    "approve": "submit",
    "report": "report",
    "export": "export",
    "download": "export",
}


class ParsedPermission(NamedTuple):
    action: str
    module: str
    document: str


def normalize_action(token: str) -> Optional[str]:
    """Map an action verb to its canonical action, or None if unknown."""
    return ACTION_SYNONYMS.get(token.strip().lower())


def parse_permission(identifier: str) -> Optional[ParsedPermission]:
    """
    Split a permission identifier into (canonical action, module, document).

    Returns None for identifiers that carry no usable grant: no separator,
    an empty module path, or an action verb outside the synonym table.
    These are skipped, never raised.
    """
    action_token, sep, module = identifier.partition("_")
    if not sep or not action_token or not module:
        log.debug(f"Skipping permission without module path: {identifier!r}")
        return None

    action = normalize_action(action_token)
    if action is None:
        log.debug(f"Skipping permission with unknown action: {identifier!r}")
        return None

    # One document per module for now
    return ParsedPermission(action=action, module=module, document=module)


def format_display_name(module: str) -> str:
    """``hrm_departments`` -> ``Hrm Departments``"""
    return " ".join(word.capitalize() for word in module.split("_") if word)
