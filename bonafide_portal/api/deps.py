"""
Bonafide Portal — FastAPI dependency wiring
"""
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from bonafide_portal.core.errors import AuthenticationError
from bonafide_portal.core.redis_client import get_redis
from bonafide_portal.db.database import get_db
from bonafide_portal.schemas.auth import Identity
from bonafide_portal.services.identity import IdentityProvider
from bonafide_portal.services.kv_store import KVStore
from bonafide_portal.services.notifier import TwilioSmsChannel
from bonafide_portal.services.otp import OtpVerifier
from bonafide_portal.services.registrar import AccountRegistrar
from bonafide_portal.services.workflow import CertificateRequestWorkflow


def get_kv_store() -> KVStore:
    return KVStore(get_redis())


def get_identity_provider(db: AsyncSession = Depends(get_db)) -> IdentityProvider:
    return IdentityProvider(db)


def get_sms_channel() -> TwilioSmsChannel:
    return TwilioSmsChannel.from_settings()


def get_otp_verifier(
    kv: KVStore = Depends(get_kv_store),
    channel: TwilioSmsChannel = Depends(get_sms_channel),
) -> OtpVerifier:
    return OtpVerifier(kv, channel)


def get_registrar(
    kv: KVStore = Depends(get_kv_store),
    identity: IdentityProvider = Depends(get_identity_provider),
    otp: OtpVerifier = Depends(get_otp_verifier),
) -> AccountRegistrar:
    return AccountRegistrar(kv, identity, otp)


def get_workflow(kv: KVStore = Depends(get_kv_store)) -> CertificateRequestWorkflow:
    return CertificateRequestWorkflow(kv)


async def get_current_identity(
    request: Request,
    identity: IdentityProvider = Depends(get_identity_provider),
) -> Identity:
    """Resolve `Authorization: Bearer <token>` to the caller's identity; 401 otherwise."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise AuthenticationError("Unauthorized")
    token = auth_header.split(" ", 1)[1].strip()
    if not token:
        raise AuthenticationError("Unauthorized")
    return await identity.resolve_token(token)
