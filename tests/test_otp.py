"""
OTP verifier tests: single-use codes, mismatches, resends, expiry, delivery.
"""
import asyncio

import pytest

from bonafide_portal.core.errors import (
    AuthorizationError,
    MismatchError,
    NotificationError,
    OtpNotFoundError,
    ValidationError,
)
from bonafide_portal.services import otp as otp_module
from bonafide_portal.services.otp import OtpVerifier, generate_code

from fakes import RecordingChannel

PHONE = "9876543210"


@pytest.mark.asyncio
async def test_code_verifies_exactly_once(otp):
    dispatch = await otp.request_code(PHONE)

    token = await otp.verify_code(PHONE, dispatch.code)
    assert token

    with pytest.raises(OtpNotFoundError):
        await otp.verify_code(PHONE, dispatch.code)


@pytest.mark.asyncio
async def test_wrong_code_keeps_stored_code(otp, monkeypatch):
    monkeypatch.setattr(otp_module, "generate_code", lambda: "482913")
    await otp.request_code(PHONE)

    with pytest.raises(MismatchError):
        await otp.verify_code(PHONE, "000000")

    assert await otp.verify_code(PHONE, "482913")


@pytest.mark.asyncio
async def test_verify_without_request_is_not_found(otp):
    with pytest.raises(OtpNotFoundError):
        await otp.verify_code(PHONE, "123456")


@pytest.mark.asyncio
@pytest.mark.parametrize("phone", ["", "12345", "98765432100", "98765abcde", "+919876543"])
async def test_request_rejects_malformed_phone(otp, phone):
    with pytest.raises(ValidationError):
        await otp.request_code(phone)


@pytest.mark.asyncio
async def test_resend_overwrites_previous_code(otp, monkeypatch):
    codes = iter(["111111", "222222"])
    monkeypatch.setattr(otp_module, "generate_code", lambda: next(codes))

    await otp.request_code(PHONE)
    await otp.request_code(PHONE)

    with pytest.raises(MismatchError):
        await otp.verify_code(PHONE, "111111")
    assert await otp.verify_code(PHONE, "222222")


@pytest.mark.asyncio
async def test_expired_code_is_not_found(otp, fake_redis):
    dispatch = await otp.request_code(PHONE)
    fake_redis.expire_now(f"otp:{PHONE}")

    with pytest.raises(OtpNotFoundError):
        await otp.verify_code(PHONE, dispatch.code)


@pytest.mark.asyncio
async def test_message_carries_code(otp, channel):
    dispatch = await otp.request_code(PHONE)

    assert dispatch.delivered is True
    phone, body = channel.sent[-1]
    assert phone == PHONE
    assert f"Your GAT verification code is: {dispatch.code}." in body
    assert "Valid for 10 minutes" in body


@pytest.mark.asyncio
async def test_delivery_failure_tolerated_in_dev_mode(kv):
    verifier = OtpVerifier(kv, RecordingChannel(succeed=False), dev_mode=True)

    dispatch = await verifier.request_code(PHONE)

    assert dispatch.delivered is False
    assert await verifier.verify_code(PHONE, dispatch.code)


@pytest.mark.asyncio
async def test_delivery_failure_surfaces_outside_dev_mode(kv):
    verifier = OtpVerifier(kv, RecordingChannel(succeed=False), dev_mode=False)

    with pytest.raises(NotificationError):
        await verifier.request_code(PHONE)


@pytest.mark.asyncio
async def test_verification_token_admits_one_signup(otp):
    dispatch = await otp.request_code(PHONE)
    token = await otp.verify_code(PHONE, dispatch.code)

    with pytest.raises(AuthorizationError):
        await otp.consume_verification(PHONE, "forged-token")
    with pytest.raises(AuthorizationError):
        await otp.consume_verification("9123456780", token)
    with pytest.raises(AuthorizationError):
        await otp.consume_verification(PHONE, None)

    await otp.consume_verification(PHONE, token)
    with pytest.raises(AuthorizationError):
        await otp.consume_verification(PHONE, token)

    await otp.restore_verification(PHONE, token)
    await otp.consume_verification(PHONE, token)


@pytest.mark.asyncio
async def test_concurrent_verifies_of_one_code_issue_one_token(otp, fake_redis):
    dispatch = await otp.request_code(PHONE)
    fake_redis.delay = 0.001

    results = await asyncio.gather(
        *(otp.verify_code(PHONE, dispatch.code) for _ in range(3)),
        return_exceptions=True,
    )

    tokens = [r for r in results if isinstance(r, str)]
    assert len(tokens) == 1
    assert all(isinstance(r, OtpNotFoundError) for r in results if not isinstance(r, str))


@pytest.mark.asyncio
async def test_concurrent_signups_spend_a_token_once(otp, fake_redis):
    dispatch = await otp.request_code(PHONE)
    token = await otp.verify_code(PHONE, dispatch.code)
    fake_redis.delay = 0.001

    results = await asyncio.gather(
        *(otp.consume_verification(PHONE, token) for _ in range(3)),
        return_exceptions=True,
    )

    assert results.count(None) == 1
    assert sum(isinstance(r, AuthorizationError) for r in results) == 2


def test_generated_codes_are_six_digits():
    for _ in range(500):
        code = generate_code()
        assert len(code) == 6
        assert 100000 <= int(code) <= 999999
