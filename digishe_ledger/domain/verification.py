"""Phone verification flow: code request and verification against the SMS gateway"""

from typing import Iterable, Optional, Protocol, Tuple

from digishe_ledger.domain.exceptions import (
    AccountAlreadyExists,
    AccountNotFound,
    CodeExpired,
    GatewayError,
    InvalidCode,
    ValidationError,
)
from digishe_ledger.domain.models import AuthIntent, Identity
from digishe_ledger.domain.phone import normalize

# Arkesel OTP status codes
GENERATE_SUCCESS = "1000"
VERIFY_SUCCESS = "1100"
INVALID_CODE = "1104"
CODE_EXPIRED = "1105"

GATEWAY_MESSAGES = {
    "1001": "Required information is missing.",
    "1005": "Invalid phone number format.",
    "1007": "System error: Insufficient SMS balance.",
    INVALID_CODE: "The code you entered is incorrect.",
    CODE_EXPIRED: "This code has expired. Please request a new one.",
}


def describe_gateway_code(code: str) -> str:
    """Human-readable text for a provider status code"""
    return GATEWAY_MESSAGES.get(str(code), f"Authentication error (Code {code})")


class GatewayResult(Protocol):
    code: str


class OtpGateway(Protocol):
    async def generate(self, number: str) -> GatewayResult: ...

    async def verify(self, number: str, code: str) -> GatewayResult: ...


class IdentityDirectory(Protocol):
    def exists(self, phone: str) -> bool: ...

    def ensure_identity(self, phone: str, name: str, is_admin: bool = False) -> Tuple[Identity, bool]: ...


class PhoneVerificationFlow:
    """
    Two-step sign-in: request a code, then verify it.

    Per phone number the flow moves Idle → CodeRequested → Verified, or back
    to Idle on any failure. The gateway owns the outstanding code, so this
    class keeps no state between calls; a resend is another request_code.
    """

    def __init__(
        self,
        gateway: OtpGateway,
        identities: IdentityDirectory,
        country_prefix: str = "233",
        admin_phones: Iterable[str] = (),
    ):
        self.gateway = gateway
        self.identities = identities
        self.country_prefix = country_prefix
        self.admin_phones = {normalize(p, country_prefix) for p in admin_phones}

    def normalize(self, raw_phone: str) -> str:
        return normalize(raw_phone, self.country_prefix)

    async def request_code(self, phone: str, intent: AuthIntent) -> None:
        """
        Send a fresh 6-digit code to `phone`.

        Raises:
            AccountNotFound: Login for an unknown phone (no SMS sent)
            AccountAlreadyExists: Registration for a known phone (no SMS sent)
            GatewayError: Provider refused to send
            GatewayUnreachable: Provider could not be reached
        """
        exists = self.identities.exists(phone)
        if intent == AuthIntent.LOGIN and not exists:
            raise AccountNotFound(phone)
        if intent == AuthIntent.REGISTER and exists:
            raise AccountAlreadyExists(phone)

        result = await self.gateway.generate(phone)
        if result.code != GENERATE_SUCCESS:
            raise GatewayError(result.code, describe_gateway_code(result.code))

    async def verify_code(self, phone: str, code: str, display_name: Optional[str] = None) -> Identity:
        """
        Check `code` and resolve the phone's identity, creating it on first sign-in.

        Raises:
            ValidationError: Code is blank or not numeric (gateway not called)
            InvalidCode: Provider rejected the code
            CodeExpired: Code outlived its 5-minute window
            GatewayError: Any other provider failure
            GatewayUnreachable: Provider could not be reached
        """
        code = (code or "").strip()
        if not code.isdigit():
            raise ValidationError("Please enter the code sent to your phone")

        result = await self.gateway.verify(phone, code)

        if result.code == VERIFY_SUCCESS:
            name = (display_name or "").strip() or "User"
            identity, _ = self.identities.ensure_identity(phone, name, phone in self.admin_phones)
            return identity
        if result.code == INVALID_CODE:
            raise InvalidCode(result.code, describe_gateway_code(result.code))
        if result.code == CODE_EXPIRED:
            raise CodeExpired(result.code, describe_gateway_code(result.code))
        raise GatewayError(result.code, describe_gateway_code(result.code))
