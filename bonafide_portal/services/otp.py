"""
Bonafide Portal — OTP verifier

Keys:
  otp:<phone>             → 6-digit code (TTL = OTP_TTL_SECONDS)
  phone_verified:<phone>  → opaque verification token (TTL = PHONE_VERIFICATION_TTL_SECONDS)

Codes and verification tokens are single-use: each is removed by an atomic
compare-and-delete, so only one caller can spend it. A newer send
overwrites any unconsumed code for the same phone.
"""
import logging
import re
import secrets
from dataclasses import dataclass

from bonafide_portal.core.config import get_settings
from bonafide_portal.core.errors import (
    AuthorizationError,
    MismatchError,
    NotificationError,
    OtpNotFoundError,
    ValidationError,
)
from bonafide_portal.core.security import new_opaque_token
from bonafide_portal.services.kv_store import KVStore
from bonafide_portal.services.notifier import TwilioSmsChannel

settings = get_settings()
logger = logging.getLogger(__name__)

OTP_PREFIX = "otp:"
VERIFIED_PREFIX = "phone_verified:"

_PHONE_RE = re.compile(r"^\d{10}$")


def validate_phone(phone: str | None) -> str:
    if not phone or not _PHONE_RE.match(phone):
        raise ValidationError("Invalid phone number", field="phone")
    return phone


def generate_code() -> str:
    """Uniform over [100000, 999999]."""
    return str(100000 + secrets.randbelow(900000))


@dataclass
class OtpDispatch:
    code: str
    delivered: bool


class OtpVerifier:
    def __init__(self, kv: KVStore, channel: TwilioSmsChannel, dev_mode: bool | None = None):
        self.kv = kv
        self.channel = channel
        self.dev_mode = settings.OTP_DEV_MODE if dev_mode is None else dev_mode

    async def request_code(self, phone: str) -> OtpDispatch:
        validate_phone(phone)
        code = generate_code()
        await self.kv.set(f"{OTP_PREFIX}{phone}", code, ttl_seconds=settings.OTP_TTL_SECONDS)

        minutes = max(1, settings.OTP_TTL_SECONDS // 60)
        result = await self.channel.send(
            phone, f"Your GAT verification code is: {code}. Valid for {minutes} minutes."
        )
        if not result.success:
            if not self.dev_mode:
                logger.warning("OTP delivery to %s failed: %s", phone, result.error)
                raise NotificationError("Could not deliver the verification code. Please try again later.")
            logger.info("Development mode: OTP for %s is %s (delivery failed: %s)", phone, code, result.error)
        else:
            logger.info("OTP sent to %s", phone)

        return OtpDispatch(code=code, delivered=result.success)

    async def verify_code(self, phone: str, code: str) -> str:
        """Consume a matching code and return a phone-verification token."""
        key = f"{OTP_PREFIX}{phone}"
        stored = await self.kv.get(key)
        if stored is None:
            raise OtpNotFoundError()
        if stored != code:
            raise MismatchError()
        # Concurrent verifies of the same code: only the one that deletes it wins.
        if not await self.kv.delete_if_equals(key, stored):
            raise OtpNotFoundError()

        token = new_opaque_token()
        await self.kv.set(
            f"{VERIFIED_PREFIX}{phone}", token, ttl_seconds=settings.PHONE_VERIFICATION_TTL_SECONDS
        )
        logger.info("Phone %s verified", phone)
        return token

    async def consume_verification(self, phone: str, token: str | None) -> None:
        """Spend the token handed out by verify_code; each token admits one signup."""
        if not token or not await self.kv.delete_if_equals(f"{VERIFIED_PREFIX}{phone}", token):
            raise AuthorizationError("Please verify your phone number first")

    async def restore_verification(self, phone: str, token: str) -> None:
        """Give a consumed token back after a signup that did not go through."""
        await self.kv.set_if_absent(
            f"{VERIFIED_PREFIX}{phone}", token, ttl_seconds=settings.PHONE_VERIFICATION_TTL_SECONDS
        )
