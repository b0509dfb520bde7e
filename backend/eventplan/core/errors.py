"""Domain errors raised by services and mapped to HTTP responses by routers."""


class PhoneValidationError(ValueError):
    """The phone number does not match any accepted national or test format."""


class PaymentProviderError(Exception):
    """The mobile-money provider could not be reached or answered with an error."""

    def __init__(self, message: str, provider: str | None = None):
        super().__init__(message)
        self.provider = provider


class ActivationError(ValueError):
    """A payment cannot be applied to a subscription."""


class AccessDeniedError(PermissionError):
    """The actor may not act on this resource."""
