from fastapi import APIRouter, Depends

from rentease.dependencies import get_otp_service
from rentease.schemas.satellites import OtpRequestPayload, OtpVerifyPayload
from rentease.services.otp import OtpService

router = APIRouter()


@router.post("/otp/send")
def send_otp(
    payload: OtpRequestPayload, service: OtpService = Depends(get_otp_service)
) -> dict[str, str]:
    """Send a six digit code; answers 429 when requested too soon or too often."""
    service.request_code(payload.email, payload.name)
    return {"message": "OTP sent successfully"}


@router.post("/otp/verify")
def verify_otp(
    payload: OtpVerifyPayload, service: OtpService = Depends(get_otp_service)
) -> dict[str, str]:
    service.verify_code(payload.email, payload.code)
    return {"message": "Email verified successfully"}
