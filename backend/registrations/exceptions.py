class RegistrationError(Exception):
    """Base class for issuance failures that callers are expected to classify."""

    default_message = "Registration failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class RegistrationValidationError(RegistrationError):
    default_message = "Invalid registration data"


class PaymentNotConfirmed(RegistrationError):
    default_message = "Payment verification failed"


class DuplicateEmail(RegistrationError):
    default_message = "Email already registered"


class DuplicateRegistrationNumber(RegistrationError):
    default_message = "Registration number already in use"


class EncodingFailed(RegistrationError):
    default_message = "Could not generate the QR code"


class NotificationDeliveryFailed(RegistrationError):
    default_message = "Email could not be delivered"
