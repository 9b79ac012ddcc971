"""
Bonafide Portal — SMS notification channel (Twilio REST API)

Best-effort: send() never raises, it reports what happened and the caller
decides whether a failed delivery matters.
"""
import logging
from dataclasses import dataclass

import httpx

from bonafide_portal.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


@dataclass
class DeliveryResult:
    success: bool
    error: str | None = None


class TwilioSmsChannel:
    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        api_base: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.api_base = (api_base or settings.TWILIO_API_BASE).rstrip("/")
        self.timeout = timeout or settings.SMS_TIMEOUT_SECONDS
        self._transport = transport

    @classmethod
    def from_settings(cls) -> "TwilioSmsChannel":
        return cls(
            account_sid=settings.TWILIO_ACCOUNT_SID,
            auth_token=settings.TWILIO_AUTH_TOKEN,
            from_number=settings.TWILIO_PHONE_NUMBER,
        )

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    async def send(self, phone: str, body: str) -> DeliveryResult:
        if not self.configured:
            logger.info("Twilio credentials not configured, skipping SMS")
            return DeliveryResult(success=False, error="Twilio not configured")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self.api_base}/Accounts/{self.account_sid}/Messages.json",
                    auth=(self.account_sid, self.auth_token),
                    data={
                        "To": f"{settings.SMS_COUNTRY_CODE}{phone}",
                        "From": self.from_number,
                        "Body": body,
                    },
                )
        except httpx.TimeoutException:
            logger.warning("Twilio did not respond within %.1fs", self.timeout)
            return DeliveryResult(success=False, error="SMS gateway timeout")
        except httpx.RequestError as exc:
            logger.warning("Twilio unreachable: %s", exc)
            return DeliveryResult(success=False, error=str(exc))

        if not response.is_success:
            logger.warning("Twilio error %s: %s", response.status_code, response.text[:200])
            return DeliveryResult(success=False, error=response.text)

        return DeliveryResult(success=True)
