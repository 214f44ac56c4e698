"""SMS gateway HTTP client for one-time code generation and verification"""

from dataclasses import dataclass

import httpx

from digishe_ledger.config import settings
from digishe_ledger.domain.exceptions import GatewayError, GatewayUnreachable
from digishe_ledger.infrastructure.observability.metrics import gateway_latency_histogram


@dataclass
class GatewayResponse:
    """Provider reply reduced to its status code and message"""

    code: str
    message: str = ""


class SmsGatewayClient:
    """Client for the external OTP provider (Arkesel)"""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url or settings.sms_api_base
        self.api_key = api_key if api_key is not None else settings.sms_api_key
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    async def generate(self, number: str, length: int | None = None, expiry_minutes: int | None = None) -> GatewayResponse:
        """
        Ask the provider to generate and text a numeric code to `number`.

        Every call issues a fresh code and supersedes the previous one.

        Raises:
            GatewayUnreachable: On timeout or transport failure
            GatewayError: On HTTP errors or an unreadable response
        """
        payload = {
            "expiry": expiry_minutes or settings.otp_expiry_minutes,
            "length": length or settings.otp_length,
            "medium": "sms",
            "message": "Your DigiShe verification code is %otp_code%. It expires in %expiry% minutes.",
            "number": number,
            "sender_id": settings.sms_sender_id,
            "type": "numeric",
        }
        return await self._post("/api/otp/generate", payload, "generate")

    async def verify(self, number: str, code: str) -> GatewayResponse:
        """
        Check a user-entered code against the provider.

        Raises:
            GatewayUnreachable: On timeout or transport failure
            GatewayError: On HTTP errors or an unreadable response
        """
        return await self._post("/api/otp/verify", {"code": code, "number": number}, "verify")

    async def _post(self, path: str, payload: dict, operation: str) -> GatewayResponse:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                with gateway_latency_histogram.labels(operation=operation).time():
                    response = await client.post(
                        f"{self.base_url}{path}",
                        json=payload,
                        headers={"api-key": self.api_key},
                    )
                # Provider reports business errors (bad number, wrong code) in the body,
                # sometimes alongside a 4xx status
                try:
                    data = response.json()
                except ValueError:
                    data = {}
                if not isinstance(data, dict) or "code" not in data:
                    response.raise_for_status()
                    raise GatewayError("unknown", "Invalid response from SMS gateway: missing status code")

                return GatewayResponse(code=str(data["code"]), message=str(data.get("message", "")))

            except httpx.TimeoutException as e:
                raise GatewayUnreachable(f"SMS gateway timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise GatewayError(str(e.response.status_code), f"SMS gateway error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise GatewayUnreachable(f"Could not reach the SMS gateway: {e}") from e
