"""
Bonafide Portal — OTP, signup and session routes
"""
from fastapi import APIRouter, Depends

from bonafide_portal.api.deps import (
    get_current_identity,
    get_identity_provider,
    get_otp_verifier,
    get_registrar,
)
from bonafide_portal.core.config import get_settings
from bonafide_portal.core.errors import AuthorizationError
from bonafide_portal.schemas.auth import (
    AdminSignupRequest,
    CurrentUserResponse,
    Identity,
    LoginRequest,
    SendOtpRequest,
    SendOtpResponse,
    SignupResponse,
    StudentSignupRequest,
    TokenResponse,
    VerifyOtpRequest,
    VerifyOtpResponse,
)
from bonafide_portal.services.identity import IdentityProvider
from bonafide_portal.services.otp import OtpVerifier
from bonafide_portal.services.registrar import AccountRegistrar

settings = get_settings()
router = APIRouter(tags=["auth"])


@router.post("/send-otp", response_model=SendOtpResponse, response_model_exclude_none=True)
async def send_otp(payload: SendOtpRequest, otp: OtpVerifier = Depends(get_otp_verifier)):
    """Generate a 6-digit code for the phone and text it out."""
    dispatch = await otp.request_code(payload.phone)
    return SendOtpResponse(
        message="OTP sent successfully",
        code=dispatch.code if settings.OTP_DEV_MODE else None,
    )


@router.post("/verify-otp", response_model=VerifyOtpResponse)
async def verify_otp(payload: VerifyOtpRequest, otp: OtpVerifier = Depends(get_otp_verifier)):
    token = await otp.verify_code(payload.phone, payload.otp)
    return VerifyOtpResponse(
        message="OTP verified successfully",
        verification_token=token,
        expires_in=settings.PHONE_VERIFICATION_TTL_SECONDS,
    )


@router.post("/signup/student", response_model=SignupResponse)
async def signup_student(
    payload: StudentSignupRequest, registrar: AccountRegistrar = Depends(get_registrar)
):
    """Create a student account. Requires the verificationToken from /verify-otp."""
    user_id = await registrar.register_student(payload)
    return SignupResponse(message="Student account created successfully", user_id=user_id)


@router.post("/signup/admin", response_model=SignupResponse)
async def signup_admin(
    payload: AdminSignupRequest, registrar: AccountRegistrar = Depends(get_registrar)
):
    user_id = await registrar.register_admin(payload)
    return SignupResponse(message="Admin account created successfully", user_id=user_id)


@router.post("/auth/login", response_model=TokenResponse)
async def login(payload: LoginRequest, identity: IdentityProvider = Depends(get_identity_provider)):
    """Validate credentials for the selected role tab and issue a bearer token."""
    user = await identity.authenticate(payload.email, payload.password)
    if user.role is not payload.role:
        raise AuthorizationError(
            f"This account is not registered as {payload.role.value}. Please use the correct login tab."
        )
    return TokenResponse(
        access_token=identity.issue_token(user),
        expires_in=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user_id=user.id,
        role=user.role,
    )


@router.get("/user", response_model=CurrentUserResponse)
async def current_user(
    caller: Identity = Depends(get_current_identity),
    registrar: AccountRegistrar = Depends(get_registrar),
):
    profile = await registrar.get_profile(caller)
    return CurrentUserResponse(user=profile, role=caller.role)
