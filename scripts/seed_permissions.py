"""
Seed script to populate default permissions and roles.

Run this script after database initialization to create:
- HRM permission identifiers (departments, positions, teams, assignments)
- Default roles
- Initial role-permission assignments

Usage:
    python -m scripts.seed_permissions
"""
import asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db, init_db
from app.features.permissions.models import Permission, Role
from app.features.permissions.normalizer import parse_permission
from app.utils import get_logger


log = get_logger(__name__)


HRM_MODULES = ("departments", "positions", "teams")

DEFAULT_PERMISSIONS = [
    (f"{verb}_hrm_{module}", f"{verb.capitalize()} {module}")
    for module in HRM_MODULES
    for verb in ("view", "create", "edit", "delete", "restore")
] + [
    ("manage_team_members", "Add, update and remove team members"),
    ("view_hrm_assignments", "View assignment history"),
    ("edit_hrm_assignments", "Assign, transfer, promote and unassign users"),
    ("export_hrm_assignments", "Export assignment history"),
    ("view_users", "View users"),
    ("create_users", "Create users"),
    ("edit_users", "Edit users"),
    ("delete_users", "Delete users"),
    ("view_roles", "View roles and permissions"),
    ("edit_roles", "Edit roles and grants"),
    ("view_audit_logs", "View audit logs"),
    ("report_hrm_headcount", "Headcount reports"),
]


DEFAULT_ROLES = {
    "hrm_admin": {
        "description": "Full access to the organization directory",
        "permissions": "ALL"  # Special case - gets all permissions
    },
    "hrm_manager": {
        "description": "Manages departments, positions, teams and assignments",
        "permissions": [
            "view_hrm_departments", "create_hrm_departments", "edit_hrm_departments",
            "view_hrm_positions", "create_hrm_positions", "edit_hrm_positions",
            "view_hrm_teams", "create_hrm_teams", "edit_hrm_teams",
            "manage_team_members",
            "view_hrm_assignments", "edit_hrm_assignments", "export_hrm_assignments",
            "view_users", "edit_users",
            "report_hrm_headcount",
        ]
    },
    "hrm_viewer": {
        "description": "Read-only access to the organization directory",
        "permissions": [
            "view_hrm_departments",
            "view_hrm_positions",
            "view_hrm_teams",
            "view_hrm_assignments",
            "view_users",
        ]
    },
}


async def seed_permissions(db: AsyncSession) -> dict[str, Permission]:
    """
    Create default permissions.

    Returns:
        Dictionary mapping permission names to Permission objects
    """
    log.info("Creating default permissions...")
    permissions_map = {}

    for name, description in DEFAULT_PERMISSIONS:
        if parse_permission(name) is None:
            log.warning(f"Permission '{name}' has no recognized action and will not show in effective permissions")

        stmt = select(Permission).where(Permission.name == name)
        result = await db.execute(stmt)
        existing = result.scalars().first()

        if existing:
            log.debug(f"Permission '{name}' already exists, skipping")
            permissions_map[name] = existing
            continue

        permission = Permission(name=name, description=description)
        db.add(permission)
        permissions_map[name] = permission
        log.info(f"Created permission: {name}")

    await db.commit()

    # Refresh all permissions to get IDs
    for perm in permissions_map.values():
        await db.refresh(perm)

    log.info(f"Seeded {len(permissions_map)} permissions")
    return permissions_map


async def seed_roles(db: AsyncSession, permissions_map: dict[str, Permission]):
    """
    Create default roles and assign permissions.

    Args:
        db: Database session
        permissions_map: Dictionary of permission name -> Permission object
    """
    log.info("Creating default roles...")

    for role_name, role_config in DEFAULT_ROLES.items():
        stmt = select(Role).where(Role.name == role_name)
        result = await db.execute(stmt)
        if result.scalars().first():
            log.debug(f"Role '{role_name}' already exists, skipping")
            continue

        role = Role(name=role_name, description=role_config["description"])

        if role_config["permissions"] == "ALL":
            role.permissions = list(permissions_map.values())
            log.info(f"Created role '{role_name}' with ALL permissions")
        else:
            granted = []
            for perm_name in role_config["permissions"]:
                if perm_name in permissions_map:
                    granted.append(permissions_map[perm_name])
                else:
                    log.warning(f"Permission '{perm_name}' not found for role '{role_name}'")

            role.permissions = granted
            log.info(f"Created role '{role_name}' with {len(granted)} permissions")

        db.add(role)

    await db.commit()
    log.info("Default roles created successfully")


async def main():
    """Main function to seed permissions and roles."""
    log.info("Starting permission seeding...")
    await init_db()

    async for db in get_db():
        try:
            permissions_map = await seed_permissions(db)
            await seed_roles(db, permissions_map)

            log.info("Permission seeding completed successfully!")
            for role_name, role_config in DEFAULT_ROLES.items():
                log.info(f"  - {role_name}: {role_config['description']}")

        except Exception as e:
            log.error(f"Error seeding permissions: {e}", exc_info=True)
            await db.rollback()
            raise

        break  # Only use first session


if __name__ == "__main__":
    asyncio.run(main())
