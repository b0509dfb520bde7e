"""Async HTTP client for the event planner API.

Failures are split the way callers need to handle them: ``TransportError``
for anything that may succeed on retry (network failure, timeout, 5xx) and
``ApiError`` for requests the server rejected (4xx).
"""

import logging
from typing import Any
from uuid import UUID

import httpx

from eventplan.schemas.entitlement import Entitlements
from eventplan.schemas.payment import PaymentInitiate, PaymentInitResponse, PaymentPollResponse
from eventplan.schemas.permission import PermissionSet
from eventplan.schemas.quota import QuotaResponse
from eventplan.schemas.subscription import SubscribeResponse, SubscriptionResponse

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """The request did not get a usable answer. Retrying may help."""


class ApiError(Exception):
    """The server rejected the request."""

    def __init__(self, status_code: int, detail: Any):
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class EventPlanClient:
    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = httpx.AsyncClient(
            base_url=base_url, headers=headers, transport=transport, timeout=timeout
        )

    async def __aenter__(self) -> "EventPlanClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise TransportError(str(exc)) from exc

        if resp.status_code >= 500:
            raise TransportError(f"{method} {path} answered {resp.status_code}")
        if resp.status_code >= 400:
            try:
                detail = resp.json().get("detail")
            except ValueError:
                detail = resp.text
            raise ApiError(resp.status_code, detail)
        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    async def get_permissions(self, event_id: UUID) -> PermissionSet:
        return PermissionSet.model_validate(
            await self._request("GET", f"/events/{event_id}/permissions")
        )

    async def get_entitlements(self, event_id: UUID) -> Entitlements:
        return Entitlements.model_validate(
            await self._request("GET", f"/events/{event_id}/entitlements")
        )

    async def get_quota(self) -> QuotaResponse:
        return QuotaResponse.model_validate(await self._request("GET", "/user/quota"))

    async def initiate_payment(
        self, data: PaymentInitiate, idempotency_key: str | None = None
    ) -> PaymentInitResponse:
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else {}
        body = await self._request(
            "POST",
            "/payments/initiate",
            json=data.model_dump(mode="json", exclude_none=True),
            headers=headers,
        )
        return PaymentInitResponse.model_validate(body)

    async def retry_payment(
        self, payment_id: UUID, idempotency_key: str | None = None
    ) -> PaymentInitResponse:
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else {}
        body = await self._request("POST", f"/payments/{payment_id}/retry", headers=headers)
        return PaymentInitResponse.model_validate(body)

    async def get_payment_status(self, payment_id: UUID) -> PaymentPollResponse:
        return PaymentPollResponse.model_validate(
            await self._request("GET", f"/payments/{payment_id}/status")
        )

    async def get_subscription(self, event_id: UUID) -> SubscriptionResponse:
        return SubscriptionResponse.model_validate(
            await self._request("GET", f"/events/{event_id}/subscription")
        )

    async def subscribe(self, plan_id: str) -> SubscribeResponse:
        body = await self._request("POST", "/subscriptions/subscribe", json={"plan_id": plan_id})
        return SubscribeResponse.model_validate(body)

    async def subscribe_event(
        self, event_id: UUID, plan_type: str, payment_id: UUID | None = None
    ) -> SubscribeResponse:
        payload: dict[str, Any] = {"plan_type": plan_type}
        if payment_id is not None:
            payload["payment_id"] = str(payment_id)
        body = await self._request("POST", f"/events/{event_id}/subscription", json=payload)
        return SubscribeResponse.model_validate(body)

    async def upgrade(self, event_id: UUID, plan_type: str, payment_id: UUID) -> SubscriptionResponse:
        body = await self._request(
            "POST",
            f"/events/{event_id}/subscription/upgrade",
            json={"plan_type": plan_type, "payment_id": str(payment_id)},
        )
        return SubscriptionResponse.model_validate(body)

    async def renew(self, event_id: UUID, payment_id: UUID) -> SubscriptionResponse:
        body = await self._request(
            "POST",
            f"/events/{event_id}/subscription/renew",
            json={"payment_id": str(payment_id)},
        )
        return SubscriptionResponse.model_validate(body)

    async def cancel(self, event_id: UUID) -> None:
        await self._request("POST", f"/events/{event_id}/subscription/cancel")
