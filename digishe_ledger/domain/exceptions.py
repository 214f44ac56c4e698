"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    kind = "domain_error"


class ValidationError(DomainException):
    """Input failed validation (bad phone format, missing field, bad amount)"""

    kind = "validation_error"


class AccountNotFound(DomainException):
    """Login attempted for a phone number with no identity"""

    kind = "account_not_found"

    def __init__(self, phone: str):
        super().__init__("No account found. Please register first.")
        self.phone = phone


class AccountAlreadyExists(DomainException):
    """Registration attempted for a phone number that already has an identity"""

    kind = "account_already_exists"

    def __init__(self, phone: str):
        super().__init__("An account already exists for this number. Please log in.")
        self.phone = phone


class GatewayError(DomainException):
    """SMS gateway answered with a provider error code"""

    kind = "gateway_error"

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code


class InvalidCode(GatewayError):
    """Gateway rejected the verification code"""

    kind = "invalid_code"


class CodeExpired(GatewayError):
    """Verification code is past its lifetime"""

    kind = "code_expired"


class GatewayUnreachable(DomainException):
    """SMS gateway could not be reached"""

    kind = "gateway_unreachable"


class StorageError(DomainException):
    """Persistent storage read or write failed"""

    kind = "storage_error"


class NotOnboarded(DomainException):
    """Session has no business yet"""

    kind = "not_onboarded"


class BusinessInactive(DomainException):
    """Business has not been activated by an admin"""

    kind = "business_inactive"
