"""Phone number normalization, validation and operator detection."""

import re
from enum import Enum

from eventplan.core.config import settings
from eventplan.core.errors import PhoneValidationError
from eventplan.models.payment import PaymentMethod

_SEPARATORS = re.compile(r"[\s\-()]")
_NATIONAL_MOBILE = re.compile(r"^0?[456]\d{7}$")

# Numbers reserved for automated testing in sandbox deployments
SANDBOX_PREFIX = "467"
_SANDBOX_NUMBER = re.compile(rf"^{SANDBOX_PREFIX}\d{{8}}$")

_OPERATOR_PREFIXES: dict[str, PaymentMethod] = {
    "06": PaymentMethod.MTN_MOBILE_MONEY,
    "04": PaymentMethod.AIRTEL_MONEY,
    "05": PaymentMethod.AIRTEL_MONEY,
}


class SandboxOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"


SANDBOX_OUTCOMES: dict[str, SandboxOutcome] = {
    "46733123450": SandboxOutcome.SUCCESS,
    "46733123451": SandboxOutcome.FAILURE,
    "46733123452": SandboxOutcome.TIMEOUT,
}


def normalize_phone(raw: str, country_code: str | None = None) -> str:
    """Strip separators and an optional leading country code."""
    country_code = country_code or settings.PHONE_COUNTRY_CODE
    digits = _SEPARATORS.sub("", raw.strip())
    return re.sub(rf"^\+?{re.escape(country_code)}", "", digits)


def is_sandbox_number(phone: str) -> bool:
    return bool(_SANDBOX_NUMBER.match(normalize_phone(phone)))


def validate_phone(raw: str, sandbox: bool) -> str:
    """Return the normalized number or raise PhoneValidationError.

    Sandbox deployments also accept the reserved test range.
    """
    phone = normalize_phone(raw)
    if not phone:
        raise PhoneValidationError("Phone number is required")
    if sandbox and _SANDBOX_NUMBER.match(phone):
        return phone
    if _NATIONAL_MOBILE.match(phone):
        return phone
    if sandbox:
        raise PhoneValidationError(
            f"Invalid phone number. Use a national mobile number or a {SANDBOX_PREFIX} test number"
        )
    raise PhoneValidationError("Invalid phone number. Expected a national mobile number")


def detect_method(raw: str, sandbox: bool) -> PaymentMethod | None:
    """Guess the operator from the number prefix.

    Returns None when the prefix does not identify an operator. Test numbers
    are routed to the MTN simulator.
    """
    phone = normalize_phone(raw)
    if sandbox and phone.startswith(SANDBOX_PREFIX):
        return PaymentMethod.MTN_MOBILE_MONEY
    if not phone.startswith("0"):
        phone = f"0{phone}"
    return _OPERATOR_PREFIXES.get(phone[:2])


def sandbox_outcome(phone: str) -> SandboxOutcome:
    """Deterministic simulated result for a test number. Unlisted numbers succeed."""
    return SANDBOX_OUTCOMES.get(normalize_phone(phone), SandboxOutcome.SUCCESS)
