"""Permission sets and their per-domain views.

A collaborator holds either a list of system roles (union of their
capabilities) or exactly one custom role (its list is the whole grant).
The two shapes are separate variants so a record carrying both cannot be
expressed.
"""

from typing import Annotated, Literal

from pydantic import BaseModel, Field


class SystemRoles(BaseModel):
    kind: Literal["system_roles"] = "system_roles"
    roles: list[str]


class CustomRoleGrant(BaseModel):
    kind: Literal["custom_role"] = "custom_role"
    name: str
    permissions: list[str]


RoleGrant = Annotated[SystemRoles | CustomRoleGrant, Field(discriminator="kind")]


class PermissionSet(BaseModel):
    """An actor's permissions on one event."""

    grant: RoleGrant | None = None
    permissions: list[str] = Field(default_factory=list)
    role: str = "none"
    is_owner: bool = False
    can_manage: bool = False
    can_invite: bool = False
    can_edit_roles: bool = False
    can_remove_collaborators: bool = False
    can_create_custom_roles: bool = False

    @classmethod
    def empty(cls) -> "PermissionSet":
        return cls()

    def has(self, permission: str) -> bool:
        return permission in self.permissions

    def has_any_in(self, domain: str) -> bool:
        prefix = f"{domain}."
        return any(p.startswith(prefix) for p in self.permissions)


class GuestsPermissions(BaseModel):
    can_view: bool = False
    can_create: bool = False
    can_edit: bool = False
    can_delete: bool = False
    can_import: bool = False
    can_export: bool = False
    can_send_invitations: bool = False
    can_check_in: bool = False
    has_any_permission: bool = False

    @classmethod
    def from_permission_set(cls, ps: PermissionSet | None) -> "GuestsPermissions":
        if ps is None:
            return cls()
        return cls(
            can_view=ps.has("guests.view"),
            can_create=ps.has("guests.create"),
            can_edit=ps.has("guests.edit"),
            can_delete=ps.has("guests.delete"),
            can_import=ps.has("guests.import"),
            can_export=ps.has("guests.export"),
            can_send_invitations=ps.has("guests.send_invitations"),
            can_check_in=ps.has("guests.checkin"),
            has_any_permission=ps.has_any_in("guests"),
        )

    @classmethod
    def full(cls) -> "GuestsPermissions":
        return cls(**{name: True for name in cls.model_fields})


class TasksPermissions(BaseModel):
    can_view: bool = False
    can_create: bool = False
    can_edit: bool = False
    can_delete: bool = False
    can_assign: bool = False
    can_complete: bool = False
    has_any_permission: bool = False

    @classmethod
    def from_permission_set(cls, ps: PermissionSet | None) -> "TasksPermissions":
        if ps is None:
            return cls()
        return cls(
            can_view=ps.has("tasks.view"),
            can_create=ps.has("tasks.create"),
            can_edit=ps.has("tasks.edit"),
            can_delete=ps.has("tasks.delete"),
            can_assign=ps.has("tasks.assign"),
            can_complete=ps.has("tasks.complete"),
            has_any_permission=ps.has_any_in("tasks"),
        )

    @classmethod
    def full(cls) -> "TasksPermissions":
        return cls(**{name: True for name in cls.model_fields})


class BudgetPermissions(BaseModel):
    can_view: bool = False
    can_create: bool = False
    can_edit: bool = False
    can_delete: bool = False
    can_export: bool = False
    has_any_permission: bool = False

    @classmethod
    def from_permission_set(cls, ps: PermissionSet | None) -> "BudgetPermissions":
        if ps is None:
            return cls()
        return cls(
            can_view=ps.has("budget.view"),
            can_create=ps.has("budget.create"),
            can_edit=ps.has("budget.edit"),
            can_delete=ps.has("budget.delete"),
            can_export=ps.has("budget.export"),
            has_any_permission=ps.has_any_in("budget"),
        )

    @classmethod
    def full(cls) -> "BudgetPermissions":
        return cls(**{name: True for name in cls.model_fields})


class PhotosPermissions(BaseModel):
    can_view: bool = False
    can_upload: bool = False
    can_delete: bool = False
    can_set_featured: bool = False
    has_any_permission: bool = False

    @classmethod
    def from_permission_set(cls, ps: PermissionSet | None) -> "PhotosPermissions":
        if ps is None:
            return cls()
        return cls(
            can_view=ps.has("photos.view"),
            can_upload=ps.has("photos.upload"),
            can_delete=ps.has("photos.delete"),
            can_set_featured=ps.has("photos.set_featured"),
            has_any_permission=ps.has_any_in("photos"),
        )

    @classmethod
    def full(cls) -> "PhotosPermissions":
        return cls(**{name: True for name in cls.model_fields})


class CollaboratorsPermissions(BaseModel):
    """Structural flags come straight from the permission set, never from strings."""

    can_view: bool = False
    can_invite: bool = False
    can_edit_roles: bool = False
    can_remove: bool = False
    can_manage: bool = False
    can_create_custom_roles: bool = False
    is_owner: bool = False
    has_any_permission: bool = False

    @classmethod
    def from_permission_set(cls, ps: PermissionSet | None) -> "CollaboratorsPermissions":
        if ps is None:
            return cls()
        return cls(
            can_view=ps.has("collaborators.view"),
            can_invite=ps.can_invite,
            can_edit_roles=ps.can_edit_roles,
            can_remove=ps.can_remove_collaborators,
            can_manage=ps.can_manage,
            can_create_custom_roles=ps.can_create_custom_roles,
            is_owner=ps.is_owner,
            has_any_permission=ps.has_any_in("collaborators"),
        )

    @classmethod
    def full(cls) -> "CollaboratorsPermissions":
        return cls(**{name: True for name in cls.model_fields})
