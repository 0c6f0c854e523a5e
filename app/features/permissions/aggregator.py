"""
Effective permission aggregation.

Merges the permission identifiers of any number of roles into a
structured, deterministically ordered action matrix grouped by module
and document.
"""
from typing import Dict, Iterable, List, Set, Tuple

from app.features.permissions.normalizer import ACTIONS, parse_permission, format_display_name
from app.features.permissions.schemas import (
    ActionMatrix,
    DocumentPermissions,
    ModulePermissions,
    RoleSnapshot,
)


def collect_identifiers(roles: Iterable[RoleSnapshot]) -> Set[str]:
    """Union of the permission identifiers granted by the given roles."""
    identifiers: Set[str] = set()
    for role in roles:
        identifiers.update(role.permissions)
    return identifiers


def effective_permissions(roles: Iterable[RoleSnapshot]) -> List[ModulePermissions]:
    """
    Build the effective permission matrix for a set of roles.

    Unparseable identifiers contribute nothing. The result is sorted by
    module name, then document name, so identical role sets always yield
    identical output regardless of role or permission order.
    """
    granted: Dict[Tuple[str, str], Set[str]] = {}
    for identifier in collect_identifiers(roles):
        parsed = parse_permission(identifier)
        if parsed is None:
            continue
        granted.setdefault((parsed.module, parsed.document), set()).add(parsed.action)

    documents_by_module: Dict[str, List[DocumentPermissions]] = {}
    for (module, document), actions in sorted(granted.items()):
        matrix = ActionMatrix(**{action: action in actions for action in ACTIONS})
        documents_by_module.setdefault(module, []).append(
            DocumentPermissions(
                document_name=document,
                display_name=format_display_name(document),
                permissions=matrix,
            )
        )

    return [
        ModulePermissions(
            module_name=module,
            display_name=format_display_name(module),
            documents=documents,
        )
        for module, documents in documents_by_module.items()
    ]


def granted_actions(modules: List[ModulePermissions], module_name: str) -> Set[str]:
    """Canonical actions granted on any document of ``module_name``."""
    actions: Set[str] = set()
    for module in modules:
        if module.module_name != module_name:
            continue
        for document in module.documents:
            actions.update(a for a in ACTIONS if getattr(document.permissions, a))
    return actions
