"""
Bonafide Portal — Account registrar

Creates student and admin identities and mirrors their profile into the KV
store under `<role>:<id>`. Registration is all-or-nothing for the caller:
a failed profile write deletes the identity that was just created.
"""
import logging

from bonafide_portal.core.config import get_settings
from bonafide_portal.core.errors import AuthorizationError, PortalError, ValidationError
from bonafide_portal.core.security import secrets_match
from bonafide_portal.models.user import Role
from bonafide_portal.schemas.auth import (
    AdminProfile,
    AdminSignupRequest,
    Identity,
    StudentProfile,
    StudentSignupRequest,
)
from bonafide_portal.services.identity import IdentityProvider
from bonafide_portal.services.kv_store import KVStore
from bonafide_portal.services.otp import OtpVerifier, validate_phone

settings = get_settings()
logger = logging.getLogger(__name__)


def profile_key(role: Role, user_id: str) -> str:
    return f"{role.value}:{user_id}"


def _check_password(password: str, confirm: str | None) -> None:
    if len(password) < settings.PASSWORD_MIN_LENGTH:
        raise ValidationError(
            f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters", field="password"
        )
    if confirm is not None and confirm != password:
        raise ValidationError("Passwords do not match", field="confirmPassword")


class AccountRegistrar:
    def __init__(self, kv: KVStore, identity: IdentityProvider, otp: OtpVerifier):
        self.kv = kv
        self.identity = identity
        self.otp = otp

    async def register_student(self, payload: StudentSignupRequest) -> str:
        validate_phone(payload.phone)
        _check_password(payload.password, payload.confirm_password)
        await self.otp.consume_verification(payload.phone, payload.verification_token)

        metadata = payload.model_dump(
            by_alias=True, exclude={"password", "confirm_password", "verification_token", "email"}
        )
        try:
            created = await self.identity.create_user(payload.email, payload.password, Role.STUDENT, metadata)
            profile = StudentProfile(id=created.id, email=created.email, **metadata)
            await self._store_profile(created, profile.to_document())
        except PortalError:
            # No account was kept, so the phone stays verified for a retry.
            await self.otp.restore_verification(payload.phone, payload.verification_token)
            raise
        logger.info("Student account created: %s", created.id)
        return created.id

    async def register_admin(self, payload: AdminSignupRequest) -> str:
        if not secrets_match(payload.secret_code, settings.ADMIN_SECRET_CODE):
            raise AuthorizationError("Invalid admin secret code")
        validate_phone(payload.phone)
        _check_password(payload.password, payload.confirm_password)

        metadata = {"fullName": payload.full_name, "phone": payload.phone}
        created = await self.identity.create_user(payload.email, payload.password, Role.ADMIN, metadata)

        profile = AdminProfile(id=created.id, email=created.email, **metadata)
        await self._store_profile(created, profile.to_document())
        logger.info("Admin account created: %s", created.id)
        return created.id

    async def _store_profile(self, created: Identity, document: dict) -> None:
        try:
            await self.kv.set(profile_key(created.role, created.id), document)
        except PortalError:
            try:
                await self.identity.delete_user(created.id)
            except PortalError as exc:
                logger.error(
                    "Orphaned %s identity %s: profile write and rollback both failed (%s)",
                    created.role.value, created.id, exc.message,
                )
            raise

    async def get_profile(self, identity: Identity) -> dict:
        """Profile mirror for the identity, falling back to the provider's metadata."""
        stored = await self.kv.get(profile_key(identity.role, identity.id))
        return stored or identity.metadata
