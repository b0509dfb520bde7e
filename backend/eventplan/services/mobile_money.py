"""Mobile-money provider abstraction.

Production charges go to the MTN MoMo collection API or the Airtel Money
merchant API. Sandbox deployments use a simulator whose outcome is fixed by
the test phone number, so payment flows can be exercised end to end.
"""

import base64
import hashlib
import hmac
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any
from uuid import UUID, uuid4

import httpx

from eventplan.core.config import settings
from eventplan.core.errors import PaymentProviderError
from eventplan.models.payment import PaymentMethod, PaymentStatus
from eventplan.services.phone import SandboxOutcome, sandbox_outcome

logger = logging.getLogger(__name__)


@dataclass
class ChargeResult:
    """Provider acknowledgement of a charge request."""

    reference: str
    status: PaymentStatus = PaymentStatus.PENDING


@dataclass
class StatusResult:
    status: PaymentStatus
    reason: str | None = None


@dataclass
class CallbackResult:
    """Result of parsing a provider notification."""

    payment_id: UUID | None = None
    reference: str | None = None
    status: PaymentStatus | None = None
    reason: str | None = None


def _callback_signature(payload: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


class MobileMoneyProvider(ABC):
    """Abstract base class for mobile-money providers."""

    @property
    @abstractmethod
    def method(self) -> PaymentMethod:
        """Return the payment method this provider collects."""
        pass  # pragma: no cover

    @abstractmethod
    def request_payment(
        self,
        payment_id: UUID,
        amount: int,
        currency: str,
        phone_number: str,
        description: str,
    ) -> ChargeResult:
        """Ask the subscriber to approve a charge.

        Raises:
            PaymentProviderError: If the provider cannot be reached or refuses the request.
        """
        pass  # pragma: no cover

    @abstractmethod
    def get_status(self, reference: str) -> StatusResult:
        """Current status of a previously requested charge.

        Raises:
            PaymentProviderError: If the provider cannot be reached.
        """
        pass  # pragma: no cover

    @abstractmethod
    def parse_callback(self, payload: dict[str, Any]) -> CallbackResult:
        """Parse a provider notification body."""
        pass  # pragma: no cover

    def verify_callback_signature(self, payload: bytes, signature: str) -> bool:
        """Notifications are signed with HMAC-SHA256 of the raw body."""
        secret = settings.payment_callback_secret
        if not secret or not signature:
            return False
        return hmac.compare_digest(_callback_signature(payload, secret), signature)


class MTNMoMoProvider(MobileMoneyProvider):
    """MTN Mobile Money collection API (request-to-pay)."""

    STATUS_MAP = {
        "SUCCESSFUL": PaymentStatus.COMPLETED,
        "FAILED": PaymentStatus.FAILED,
        "REJECTED": PaymentStatus.FAILED,
        "TIMEOUT": PaymentStatus.FAILED,
        "PENDING": PaymentStatus.PENDING,
    }

    def __init__(self, transport: httpx.BaseTransport | None = None):
        self.subscription_key = settings.mtn_subscription_key
        self.api_user = settings.mtn_api_user
        self.api_key = settings.mtn_api_key
        self.target_environment = settings.mtn_target_environment
        self.transport = transport

    @property
    def method(self) -> PaymentMethod:
        return PaymentMethod.MTN_MOBILE_MONEY

    def _client(self) -> httpx.Client:
        return httpx.Client(base_url=settings.mtn_base_url, timeout=30.0, transport=self.transport)

    def _headers(self, client: httpx.Client) -> dict[str, str]:
        credentials = base64.b64encode(f"{self.api_user}:{self.api_key}".encode()).decode()
        try:
            resp = client.post(
                "/collection/token/",
                headers={
                    "Authorization": f"Basic {credentials}",
                    "Ocp-Apim-Subscription-Key": self.subscription_key,
                },
            )
            resp.raise_for_status()
            token = str(resp.json()["access_token"])
        except (httpx.HTTPError, ValueError, KeyError) as exc:
            raise PaymentProviderError(f"MTN token request failed: {exc!r}", "mtn") from exc
        return {
            "Authorization": f"Bearer {token}",
            "X-Target-Environment": self.target_environment,
            "Ocp-Apim-Subscription-Key": self.subscription_key,
        }

    def request_payment(
        self,
        payment_id: UUID,
        amount: int,
        currency: str,
        phone_number: str,
        description: str,
    ) -> ChargeResult:
        reference = str(uuid4())
        body = {
            "amount": str(amount),
            "currency": currency,
            "externalId": str(payment_id),
            "payer": {
                "partyIdType": "MSISDN",
                "partyId": f"{settings.PHONE_COUNTRY_CODE}{phone_number}",
            },
            "payerMessage": description,
            "payeeNote": description,
        }
        with self._client() as client:
            headers = self._headers(client)
            headers["X-Reference-Id"] = reference
            try:
                resp = client.post("/collection/v1_0/requesttopay", json=body, headers=headers)
                resp.raise_for_status()
            except httpx.HTTPError as exc:
                raise PaymentProviderError(f"MTN request-to-pay failed: {exc}", "mtn") from exc
        return ChargeResult(reference=reference)

    def get_status(self, reference: str) -> StatusResult:
        with self._client() as client:
            headers = self._headers(client)
            try:
                resp = client.get(f"/collection/v1_0/requesttopay/{reference}", headers=headers)
                resp.raise_for_status()
                data = resp.json()
            except (httpx.HTTPError, ValueError) as exc:
                raise PaymentProviderError(f"MTN status request failed: {exc!r}", "mtn") from exc
        status = self.STATUS_MAP.get(str(data.get("status", "")).upper(), PaymentStatus.PENDING)
        reason = data.get("reason")
        if isinstance(reason, dict):
            reason = reason.get("message") or reason.get("code")
        return StatusResult(status=status, reason=reason)

    def parse_callback(self, payload: dict[str, Any]) -> CallbackResult:
        result = CallbackResult(
            reference=payload.get("referenceId"),
            status=self.STATUS_MAP.get(str(payload.get("status", "")).upper()),
            reason=payload.get("reason"),
        )
        external_id = payload.get("externalId")
        if external_id:
            try:
                result.payment_id = UUID(str(external_id))
            except ValueError:
                logger.warning("MTN callback carries a non-UUID externalId %s", external_id)
        return result


class AirtelMoneyProvider(MobileMoneyProvider):
    """Airtel Money merchant payments API."""

    STATUS_MAP = {
        "TS": PaymentStatus.COMPLETED,
        "TF": PaymentStatus.FAILED,
        "TE": PaymentStatus.FAILED,
        "TIP": PaymentStatus.PENDING,
        "TA": PaymentStatus.PENDING,
    }

    def __init__(self, transport: httpx.BaseTransport | None = None):
        self.client_id = settings.airtel_client_id
        self.client_secret = settings.airtel_client_secret
        self.country = settings.airtel_country
        self.currency = settings.airtel_currency
        self.transport = transport

    @property
    def method(self) -> PaymentMethod:
        return PaymentMethod.AIRTEL_MONEY

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=settings.airtel_base_url, timeout=30.0, transport=self.transport
        )

    def _headers(self, client: httpx.Client) -> dict[str, str]:
        try:
            resp = client.post(
                "/auth/oauth2/token",
                json={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "grant_type": "client_credentials",
                },
            )
            resp.raise_for_status()
            token = str(resp.json()["access_token"])
        except (httpx.HTTPError, ValueError, KeyError) as exc:
            raise PaymentProviderError(f"Airtel token request failed: {exc!r}", "airtel") from exc
        return {
            "Authorization": f"Bearer {token}",
            "X-Country": self.country,
            "X-Currency": self.currency,
        }

    def request_payment(
        self,
        payment_id: UUID,
        amount: int,
        currency: str,
        phone_number: str,
        description: str,
    ) -> ChargeResult:
        # Airtel lets the merchant choose the transaction id
        reference = payment_id.hex
        body = {
            "reference": description,
            "subscriber": {
                "country": self.country,
                "currency": currency,
                "msisdn": phone_number.lstrip("0"),
            },
            "transaction": {
                "amount": amount,
                "country": self.country,
                "currency": currency,
                "id": reference,
            },
        }
        with self._client() as client:
            headers = self._headers(client)
            try:
                resp = client.post("/merchant/v1/payments/", json=body, headers=headers)
                resp.raise_for_status()
                status = resp.json().get("status", {})
            except (httpx.HTTPError, ValueError) as exc:
                raise PaymentProviderError(
                    f"Airtel payment request failed: {exc!r}", "airtel"
                ) from exc

        if status.get("success") is False:
            raise PaymentProviderError(
                f"Airtel rejected the payment: {status.get('message')}", "airtel"
            )
        return ChargeResult(reference=reference)

    def get_status(self, reference: str) -> StatusResult:
        with self._client() as client:
            headers = self._headers(client)
            try:
                resp = client.get(f"/standard/v1/payments/{reference}", headers=headers)
                resp.raise_for_status()
                transaction = resp.json().get("data", {}).get("transaction", {})
            except (httpx.HTTPError, ValueError) as exc:
                raise PaymentProviderError(
                    f"Airtel status request failed: {exc!r}", "airtel"
                ) from exc
        status = self.STATUS_MAP.get(str(transaction.get("status", "")), PaymentStatus.PENDING)
        return StatusResult(status=status, reason=transaction.get("message"))

    def parse_callback(self, payload: dict[str, Any]) -> CallbackResult:
        transaction = payload.get("transaction", {})
        reference = transaction.get("id")
        return CallbackResult(
            reference=str(reference) if reference else None,
            status=self.STATUS_MAP.get(str(transaction.get("status_code", ""))),
            reason=transaction.get("message"),
        )


class SandboxProvider(MobileMoneyProvider):
    """Simulated provider for sandbox deployments.

    The outcome is encoded in the reference, so status lookups need no state:
    success completes and failure fails on the first status check, while a
    timeout number stays pending forever.
    """

    OUTCOME_STATUS = {
        SandboxOutcome.SUCCESS: PaymentStatus.COMPLETED,
        SandboxOutcome.FAILURE: PaymentStatus.FAILED,
        SandboxOutcome.TIMEOUT: PaymentStatus.PENDING,
    }

    def __init__(self, method: PaymentMethod = PaymentMethod.MTN_MOBILE_MONEY):
        self._method = method

    @property
    def method(self) -> PaymentMethod:
        return self._method

    def request_payment(
        self,
        payment_id: UUID,
        amount: int,
        currency: str,
        phone_number: str,
        description: str,
    ) -> ChargeResult:
        outcome = sandbox_outcome(phone_number)
        logger.info(
            "Sandbox charge %s for %s resolves to %s", payment_id, phone_number, outcome.value
        )
        return ChargeResult(reference=f"sandbox-{outcome.value}-{payment_id.hex}")

    def get_status(self, reference: str) -> StatusResult:
        parts = reference.split("-")
        if len(parts) != 3 or parts[0] != "sandbox":
            raise PaymentProviderError(f"Unknown sandbox reference {reference}", "sandbox")
        outcome = SandboxOutcome(parts[1])
        status = self.OUTCOME_STATUS[outcome]
        reason = "Simulated failure" if outcome == SandboxOutcome.FAILURE else None
        return StatusResult(status=status, reason=reason)

    def parse_callback(self, payload: dict[str, Any]) -> CallbackResult:
        status = payload.get("status")
        return CallbackResult(
            reference=payload.get("reference"),
            status=PaymentStatus(status) if status in {"completed", "failed"} else None,
            reason=payload.get("reason"),
        )


def get_mobile_money_provider(
    method: PaymentMethod, sandbox: bool | None = None
) -> MobileMoneyProvider:
    """Factory function to get the provider for a payment method."""
    if sandbox is None:
        sandbox = settings.is_sandbox
    if sandbox:
        return SandboxProvider(method)

    providers: dict[PaymentMethod, type[MobileMoneyProvider]] = {
        PaymentMethod.MTN_MOBILE_MONEY: MTNMoMoProvider,
        PaymentMethod.AIRTEL_MONEY: AirtelMoneyProvider,
    }
    provider_class = providers.get(method)
    if not provider_class:
        raise ValueError(f"Unknown payment method: {method}")
    return provider_class()
