from pydantic import BaseModel, Field

from eventplan.schemas.entitlement import UNLIMITED, Entitlements
from eventplan.schemas.permission import (
    BudgetPermissions,
    CollaboratorsPermissions,
    GuestsPermissions,
    PhotosPermissions,
    TasksPermissions,
)


class GuestsAccess(BaseModel):
    can_access: bool = False
    can_view: bool = False
    can_create: bool = False
    can_edit: bool = False
    can_delete: bool = False
    can_import: bool = False
    can_export: bool = False
    max_per_event: int = 0
    is_unlimited: bool = False
    permissions: GuestsPermissions = Field(default_factory=GuestsPermissions)


class TasksAccess(BaseModel):
    can_access: bool = False
    can_view: bool = False
    can_create: bool = False
    can_edit: bool = False
    can_delete: bool = False
    permissions: TasksPermissions = Field(default_factory=TasksPermissions)


class BudgetAccess(BaseModel):
    can_access: bool = False
    can_view: bool = False
    can_create: bool = False
    can_edit: bool = False
    can_delete: bool = False
    can_export: bool = False
    permissions: BudgetPermissions = Field(default_factory=BudgetPermissions)


class PhotosAccess(BaseModel):
    can_access: bool = False
    can_view: bool = False
    can_upload: bool = False
    can_delete: bool = False
    max_per_event: int = 0
    is_unlimited: bool = False
    permissions: PhotosPermissions = Field(default_factory=PhotosPermissions)


class CollaboratorsAccess(BaseModel):
    can_access: bool = False
    can_view: bool = False
    can_invite: bool = False
    can_edit_roles: bool = False
    can_remove: bool = False
    is_owner: bool = False
    max_per_event: int = 0
    is_unlimited: bool = False
    permissions: CollaboratorsPermissions = Field(default_factory=CollaboratorsPermissions)


class AccessView(BaseModel):
    """Resolved capabilities of one actor on one event."""

    is_admin: bool = False
    is_loading: bool = False
    entitlements: Entitlements | None = None
    guests: GuestsAccess = Field(default_factory=GuestsAccess)
    tasks: TasksAccess = Field(default_factory=TasksAccess)
    budget: BudgetAccess = Field(default_factory=BudgetAccess)
    photos: PhotosAccess = Field(default_factory=PhotosAccess)
    collaborators: CollaboratorsAccess = Field(default_factory=CollaboratorsAccess)

    def can_use_feature(self, key: str) -> bool:
        if self.is_admin:
            return True
        if self.entitlements is None:
            return False
        return self.entitlements.has_feature(key)

    def get_limit(self, key: str) -> int:
        if self.is_admin:
            return UNLIMITED
        if self.entitlements is None:
            return 0
        return self.entitlements.get_limit(key)

    def is_unlimited(self, key: str) -> bool:
        return self.get_limit(key) == UNLIMITED
