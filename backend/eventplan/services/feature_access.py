"""Merges entitlements and permissions into per-domain access.

``resolve_access`` is a pure function of its inputs. A missing snapshot
(``None``) means the source has not answered or failed, and is treated as
denial.
"""

from eventplan.schemas.access import (
    AccessView,
    BudgetAccess,
    CollaboratorsAccess,
    GuestsAccess,
    PhotosAccess,
    TasksAccess,
)
from eventplan.schemas.actor import ActorContext
from eventplan.schemas.entitlement import UNLIMITED, Entitlements
from eventplan.schemas.permission import (
    BudgetPermissions,
    CollaboratorsPermissions,
    GuestsPermissions,
    PermissionSet,
    PhotosPermissions,
    TasksPermissions,
)

# Feature flag gating each domain
DOMAIN_GATES = {
    "guests": "guests.manage",
    "tasks": "tasks.enabled",
    "budget": "budget.enabled",
    "collaborators": "collaborators.manage",
}


def _admin_view(entitlements: Entitlements | None) -> AccessView:
    return AccessView(
        is_admin=True,
        is_loading=False,
        entitlements=entitlements,
        guests=GuestsAccess(
            can_access=True,
            can_view=True,
            can_create=True,
            can_edit=True,
            can_delete=True,
            can_import=True,
            can_export=True,
            max_per_event=UNLIMITED,
            is_unlimited=True,
            permissions=GuestsPermissions.full(),
        ),
        tasks=TasksAccess(
            can_access=True,
            can_view=True,
            can_create=True,
            can_edit=True,
            can_delete=True,
            permissions=TasksPermissions.full(),
        ),
        budget=BudgetAccess(
            can_access=True,
            can_view=True,
            can_create=True,
            can_edit=True,
            can_delete=True,
            can_export=True,
            permissions=BudgetPermissions.full(),
        ),
        photos=PhotosAccess(
            can_access=True,
            can_view=True,
            can_upload=True,
            can_delete=True,
            max_per_event=UNLIMITED,
            is_unlimited=True,
            permissions=PhotosPermissions.full(),
        ),
        collaborators=CollaboratorsAccess(
            can_access=True,
            can_view=True,
            can_invite=True,
            can_edit_roles=True,
            can_remove=True,
            is_owner=True,
            max_per_event=UNLIMITED,
            is_unlimited=True,
            permissions=CollaboratorsPermissions.full(),
        ),
    )


def resolve_access(
    actor: ActorContext,
    entitlements: Entitlements | None,
    permissions: PermissionSet | None,
) -> AccessView:
    if actor.is_admin:
        # Snapshots are kept for display only
        return _admin_view(entitlements)

    ents = entitlements or Entitlements()
    perms = permissions or PermissionSet.empty()

    def gate(domain: str) -> bool:
        return ents.has_feature(DOMAIN_GATES[domain]) and perms.has_any_in(domain)

    def allowed(feature: str, permission: str) -> bool:
        return ents.has_feature(feature) and perms.has(permission)

    guests_gate = DOMAIN_GATES["guests"]
    guests_limit = ents.get_limit("guests.max_per_event")
    guests = GuestsAccess(
        can_access=gate("guests"),
        can_view=allowed(guests_gate, "guests.view"),
        can_create=allowed(guests_gate, "guests.create"),
        can_edit=allowed(guests_gate, "guests.edit"),
        can_delete=allowed(guests_gate, "guests.delete"),
        can_import=allowed("guests.import", "guests.import"),
        can_export=allowed("guests.export", "guests.export"),
        max_per_event=guests_limit,
        is_unlimited=guests_limit == UNLIMITED,
        permissions=GuestsPermissions.from_permission_set(permissions),
    )

    tasks_gate = DOMAIN_GATES["tasks"]
    tasks = TasksAccess(
        can_access=gate("tasks"),
        can_view=allowed(tasks_gate, "tasks.view"),
        can_create=allowed(tasks_gate, "tasks.create"),
        can_edit=allowed(tasks_gate, "tasks.edit"),
        can_delete=allowed(tasks_gate, "tasks.delete"),
        permissions=TasksPermissions.from_permission_set(permissions),
    )

    budget_gate = DOMAIN_GATES["budget"]
    budget = BudgetAccess(
        can_access=gate("budget"),
        can_view=allowed(budget_gate, "budget.view"),
        can_create=allowed(budget_gate, "budget.create"),
        can_edit=allowed(budget_gate, "budget.edit"),
        can_delete=allowed(budget_gate, "budget.delete"),
        can_export=allowed(budget_gate, "budget.export"),
        permissions=BudgetPermissions.from_permission_set(permissions),
    )

    # Photos have no feature flag; the per-event limit is the gate
    photos_limit = ents.get_limit("photos.max_per_event")
    photos_enabled = entitlements is not None and photos_limit != 0
    photos = PhotosAccess(
        can_access=photos_enabled and perms.has_any_in("photos"),
        can_view=photos_enabled and perms.has("photos.view"),
        can_upload=photos_enabled and perms.has("photos.upload"),
        can_delete=photos_enabled and perms.has("photos.delete"),
        max_per_event=photos_limit,
        is_unlimited=photos_limit == UNLIMITED,
        permissions=PhotosPermissions.from_permission_set(permissions),
    )

    collaborators_gate = ents.has_feature(DOMAIN_GATES["collaborators"])
    collaborators_limit = ents.get_limit("collaborators.max_per_event")
    collaborators = CollaboratorsAccess(
        can_access=gate("collaborators"),
        can_view=allowed(DOMAIN_GATES["collaborators"], "collaborators.view"),
        can_invite=collaborators_gate and perms.can_invite,
        can_edit_roles=collaborators_gate and perms.can_edit_roles,
        can_remove=collaborators_gate and perms.can_remove_collaborators,
        is_owner=perms.is_owner,
        max_per_event=collaborators_limit,
        is_unlimited=collaborators_limit == UNLIMITED,
        permissions=CollaboratorsPermissions.from_permission_set(permissions),
    )

    return AccessView(
        is_admin=False,
        is_loading=entitlements is None or permissions is None,
        entitlements=entitlements,
        guests=guests,
        tasks=tasks,
        budget=budget,
        photos=photos,
        collaborators=collaborators,
    )
