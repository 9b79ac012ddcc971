"""
Account registrar tests: verified-phone gate, admin secret, all-or-nothing writes.
"""
import pytest

from bonafide_portal.core.errors import (
    AuthenticationError,
    AuthorizationError,
    AuthProviderError,
    StorageError,
    ValidationError,
)
from bonafide_portal.models.user import Role
from bonafide_portal.schemas.auth import AdminSignupRequest, StudentSignupRequest

from flows import admin_payload, student_payload

PHONE = "9876543210"


async def _verified(otp, phone: str = PHONE) -> str:
    dispatch = await otp.request_code(phone)
    return await otp.verify_code(phone, dispatch.code)


def _student(token: str | None, **overrides) -> StudentSignupRequest:
    return StudentSignupRequest.model_validate(student_payload(verificationToken=token, **overrides))


@pytest.mark.asyncio
async def test_register_student_persists_profile(registrar, otp, kv, identity):
    token = await _verified(otp)

    user_id = await registrar.register_student(_student(token))

    profile = await kv.get(f"student:{user_id}")
    assert profile["id"] == user_id
    assert profile["fullName"] == "Asha Rao"
    assert profile["usn"] == "1GA21CS014"
    assert profile["fatherName"] == "Ravi Rao"
    assert profile["department"] == "Computer Science"
    assert profile["phone"] == PHONE
    assert "password" not in profile

    me = await identity.authenticate("asha.rao@gat.edu.in", "secret1")
    assert me.id == user_id
    assert me.role is Role.STUDENT
    assert me.metadata["usn"] == "1GA21CS014"


@pytest.mark.asyncio
async def test_register_student_ids_are_unique(registrar, otp):
    first = await registrar.register_student(_student(await _verified(otp)))
    second = await registrar.register_student(
        _student(await _verified(otp, "9123456780"), phone="9123456780", email="kiran@gat.edu.in")
    )
    assert first != second


@pytest.mark.asyncio
async def test_register_student_requires_verified_phone(registrar, identity):
    with pytest.raises(AuthorizationError):
        await registrar.register_student(_student(None))

    with pytest.raises(AuthenticationError):
        await identity.authenticate("asha.rao@gat.edu.in", "secret1")


@pytest.mark.asyncio
async def test_verification_token_is_single_use(registrar, otp):
    token = await _verified(otp)
    await registrar.register_student(_student(token))

    with pytest.raises(AuthorizationError):
        await registrar.register_student(_student(token, email="someone.else@gat.edu.in"))


@pytest.mark.asyncio
async def test_token_is_spent_before_the_account_exists(registrar, otp, kv, identity, monkeypatch):
    token = await _verified(otp)
    original_create = identity.create_user
    seen = []

    async def recording_create(*args, **kwargs):
        seen.append(await kv.get(f"phone_verified:{PHONE}"))
        return await original_create(*args, **kwargs)

    monkeypatch.setattr(identity, "create_user", recording_create)

    user_id = await registrar.register_student(_student(token))

    assert seen == [None]
    assert await kv.get(f"student:{user_id}") is not None
    assert await kv.get(f"phone_verified:{PHONE}") is None


@pytest.mark.asyncio
async def test_short_password_rejected(registrar, otp):
    token = await _verified(otp)
    with pytest.raises(ValidationError):
        await registrar.register_student(_student(token, password="abc", confirmPassword="abc"))


@pytest.mark.asyncio
async def test_mismatched_confirmation_rejected(registrar, otp):
    token = await _verified(otp)
    with pytest.raises(ValidationError):
        await registrar.register_student(_student(token, confirmPassword="secret2"))


@pytest.mark.asyncio
async def test_duplicate_email_is_provider_error(registrar, otp, kv):
    await registrar.register_student(_student(await _verified(otp)))

    retry_token = await _verified(otp)
    with pytest.raises(AuthProviderError) as exc_info:
        await registrar.register_student(_student(retry_token))

    assert "already been registered" in exc_info.value.message
    assert len(await kv.get_by_prefix("student:")) == 1
    # the failed signup gave its token back
    await otp.consume_verification(PHONE, retry_token)


@pytest.mark.asyncio
async def test_admin_with_bad_secret_creates_nothing(registrar, identity, kv):
    with pytest.raises(AuthorizationError):
        await registrar.register_admin(AdminSignupRequest.model_validate(admin_payload(secretCode="nope")))

    with pytest.raises(AuthenticationError):
        await identity.authenticate("registrar@gat.edu.in", "adminpass")
    assert await kv.get_by_prefix("admin:") == []


@pytest.mark.asyncio
async def test_register_admin_persists_profile(registrar, kv, identity):
    user_id = await registrar.register_admin(AdminSignupRequest.model_validate(admin_payload()))

    assert await kv.get(f"admin:{user_id}") == {
        "id": user_id,
        "fullName": "Meera Iyer",
        "email": "registrar@gat.edu.in",
        "phone": "9000000001",
    }
    me = await identity.authenticate("registrar@gat.edu.in", "adminpass")
    assert me.role is Role.ADMIN


@pytest.mark.asyncio
async def test_failed_profile_write_rolls_back_identity(registrar, otp, kv, identity, monkeypatch):
    token = await _verified(otp)
    original_set = kv.set

    async def failing_set(key, value, ttl_seconds=None):
        if key.startswith("student:"):
            raise StorageError("Key-value store error: connection reset")
        return await original_set(key, value, ttl_seconds)

    monkeypatch.setattr(kv, "set", failing_set)

    with pytest.raises(StorageError):
        await registrar.register_student(_student(token))

    with pytest.raises(AuthenticationError):
        await identity.authenticate("asha.rao@gat.edu.in", "secret1")
    # the phone stays verified so the student can simply retry
    await otp.consume_verification(PHONE, token)
