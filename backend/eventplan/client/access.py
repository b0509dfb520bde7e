"""Client-side feature access resolution.

Entitlements and permissions are fetched concurrently. Whatever has not
arrived, or failed, counts as denied.
"""

import asyncio
import logging
from dataclasses import dataclass
from uuid import UUID

from eventplan.client.api_client import EventPlanClient
from eventplan.schemas.access import AccessView
from eventplan.schemas.actor import ActorContext
from eventplan.schemas.entitlement import Entitlements
from eventplan.schemas.permission import PermissionSet
from eventplan.services.feature_access import resolve_access

logger = logging.getLogger(__name__)


@dataclass
class AccessSnapshot:
    """The two inputs of an access decision as they arrive."""

    entitlements: Entitlements | None = None
    permissions: PermissionSet | None = None

    def view(self, actor: ActorContext) -> AccessView:
        return resolve_access(actor, self.entitlements, self.permissions)


class AccessResolver:
    def __init__(self, client: EventPlanClient):
        self.client = client

    async def resolve(self, actor: ActorContext, event_id: UUID) -> AccessView:
        if actor.is_admin:
            return AccessSnapshot().view(actor)

        entitlements, permissions = await asyncio.gather(
            self.client.get_entitlements(event_id),
            self.client.get_permissions(event_id),
            return_exceptions=True,
        )

        snapshot = AccessSnapshot()
        if isinstance(entitlements, Entitlements):
            snapshot.entitlements = entitlements
        else:
            logger.warning("Entitlements for event %s unavailable: %s", event_id, entitlements)
        if isinstance(permissions, PermissionSet):
            snapshot.permissions = permissions
        else:
            logger.warning("Permissions for event %s unavailable: %s", event_id, permissions)
        return snapshot.view(actor)
