"""Permission source: an actor's capabilities on one event."""

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from eventplan.repositories.collaborator_repository import CollaboratorRepository
from eventplan.repositories.event_repository import EventRepository
from eventplan.schemas.actor import ActorContext
from eventplan.schemas.permission import (
    CustomRoleGrant,
    PermissionSet,
    RoleGrant,
    SystemRoles,
)

logger = logging.getLogger(__name__)

DOMAIN_PERMISSIONS: dict[str, tuple[str, ...]] = {
    "guests": (
        "view",
        "create",
        "edit",
        "delete",
        "import",
        "export",
        "send_invitations",
        "checkin",
    ),
    "tasks": ("view", "create", "edit", "delete", "assign", "complete"),
    "budget": ("view", "create", "edit", "delete", "export"),
    "photos": ("view", "upload", "delete", "set_featured"),
    "collaborators": ("view", "invite", "edit_roles", "remove"),
}

ALL_PERMISSIONS = frozenset(
    f"{domain}.{action}" for domain, actions in DOMAIN_PERMISSIONS.items() for action in actions
)


def _domain(domain: str) -> set[str]:
    return {f"{domain}.{action}" for action in DOMAIN_PERMISSIONS[domain]}


_VIEW_ALL = {f"{domain}.view" for domain in DOMAIN_PERMISSIONS}

SYSTEM_ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    "owner": ALL_PERMISSIONS,
    "coordinator": ALL_PERMISSIONS,
    "guest_manager": frozenset(_domain("guests") | {"photos.view"}),
    "planner": frozenset(_domain("tasks") | {"guests.view", "budget.view", "photos.view"}),
    "accountant": frozenset(_domain("budget") | {"guests.view", "tasks.view"}),
    "photographer": frozenset(_domain("photos") | {"guests.view"}),
    "supervisor": frozenset(_VIEW_ALL | {"guests.checkin", "tasks.complete"}),
    "reporter": frozenset(_VIEW_ALL | {"guests.export", "budget.export"}),
    "editor": frozenset(
        {
            "guests.view",
            "guests.create",
            "guests.edit",
            "tasks.view",
            "tasks.create",
            "tasks.edit",
            "tasks.complete",
            "budget.view",
            "budget.create",
            "budget.edit",
            "photos.view",
            "photos.upload",
        }
    ),
    "viewer": frozenset(_VIEW_ALL),
}

# Roles allowed to restructure the collaborator list
STRUCTURAL_ROLES = frozenset({"owner", "coordinator"})


def build_permission_set(grant: RoleGrant, is_owner: bool = False) -> PermissionSet:
    """Expand a role grant into a permission set.

    System roles contribute the union of their table entries. A custom role's
    list is taken as is and never widened through the table.
    """
    if isinstance(grant, CustomRoleGrant):
        permissions = sorted(set(grant.permissions))
        can_invite = "collaborators.invite" in permissions
        can_edit_roles = "collaborators.edit_roles" in permissions
        return PermissionSet(
            grant=grant,
            permissions=permissions,
            role=grant.name,
            is_owner=False,
            can_manage=can_invite or can_edit_roles,
            can_invite=can_invite,
            can_edit_roles=can_edit_roles,
            can_remove_collaborators="collaborators.remove" in permissions,
            can_create_custom_roles=False,
        )

    union: set[str] = set()
    for role in grant.roles:
        role_permissions = SYSTEM_ROLE_PERMISSIONS.get(role)
        if role_permissions is None:
            logger.warning("Ignoring unknown system role %s", role)
            continue
        union |= role_permissions

    structural = bool(STRUCTURAL_ROLES.intersection(grant.roles))
    return PermissionSet(
        grant=grant,
        permissions=sorted(union),
        role=grant.roles[0] if grant.roles else "none",
        is_owner=is_owner,
        can_manage=structural,
        can_invite=structural,
        can_edit_roles=structural,
        can_remove_collaborators=structural,
        can_create_custom_roles=structural,
    )


class PermissionService:
    def __init__(self, db: Session):
        self.db = db
        self.event_repo = EventRepository(db)
        self.collaborator_repo = CollaboratorRepository(db)

    def permissions_for(self, actor: ActorContext, event_id: UUID) -> PermissionSet:
        """Permissions of ``actor`` on an event.

        The event owner always holds the owner role. An actor with no
        membership gets an empty set.

        Raises:
            ValueError: If the event does not exist.
        """
        event = self.event_repo.get_by_id(event_id)
        if not event:
            raise ValueError(f"Event {event_id} not found")

        if event.owner_id == actor.account_id:
            return build_permission_set(SystemRoles(roles=["owner"]), is_owner=True)

        membership = self.collaborator_repo.get_membership(event_id, actor.account_id)
        if membership is None or membership.accepted_at is None:
            return PermissionSet.empty()

        if membership.custom_role_id is not None:
            custom_role = self.collaborator_repo.get_custom_role(
                membership.custom_role_id  # type: ignore[arg-type]
            )
            if custom_role is None:
                logger.warning(
                    "Collaborator %s references missing custom role %s",
                    membership.id,
                    membership.custom_role_id,
                )
                return PermissionSet.empty()
            return build_permission_set(
                CustomRoleGrant(
                    name=str(custom_role.name),
                    permissions=list(custom_role.permissions or []),
                )
            )

        return build_permission_set(SystemRoles(roles=list(membership.system_roles or [])))
