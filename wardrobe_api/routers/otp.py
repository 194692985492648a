import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlmodel import Session

from ..auth import verify_token
from ..config import OTP_EXPOSE_CODE
from ..database import get_session
from ..services.otp import OtpError, OtpService, get_otp_service
from ..services.sms import SmsSender, get_sms_sender

logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["OTP"],
    dependencies=[Depends(verify_token)]
)

def _number_as_text(value):
    # Clients sometimes send digits as JSON numbers; leading zeros are already lost
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value

# The mobile client speaks camelCase. Request fields are optional so that a
# missing one gets the documented 400 body instead of a 422.
class SendOtpRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    country_code: Optional[str] = Field(default=None, alias="countryCode")

    @field_validator("phone_number", "country_code", mode="before")
    @classmethod
    def numbers_as_text(cls, value):
        return _number_as_text(value)

class ValidateOtpRequest(SendOtpRequest):
    otp: Optional[str] = None

    @field_validator("otp", mode="before")
    @classmethod
    def otp_as_text(cls, value):
        return _number_as_text(value)

class SendOtpResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str
    delivery: Optional[str] = None
    code_for_testing: Optional[str] = Field(default=None, alias="codeForTesting")

class ValidateOtpResponse(BaseModel):
    success: bool
    message: str
    valid: bool = False

def _send_response(status_code: int, body: SendOtpResponse) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True, exclude_none=True)
    )

def _validate_response(status_code: int, body: ValidateOtpResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump())

@router.post("/send-otp", response_model=SendOtpResponse)
def send_otp(
    *,
    session: Session = Depends(get_session),
    service: OtpService = Depends(get_otp_service),
    sender: SmsSender = Depends(get_sms_sender),
    request: SendOtpRequest
):
    try:
        result = service.issue(session, request.phone_number, request.country_code, sender)
    except OtpError as e:
        return _send_response(e.status_code, SendOtpResponse(success=False, message=e.message))
    except Exception:
        logger.exception("Error in send-otp")
        return _send_response(500, SendOtpResponse(success=False, message="Internal server error"))

    return _send_response(200, SendOtpResponse(
        success=True,
        message="OTP sent successfully" if result.delivery.delivered
        else "OTP generated but SMS delivery failed",
        delivery=result.delivery.label,
        code_for_testing=result.code if OTP_EXPOSE_CODE else None,
    ))

@router.post("/validate-otp", response_model=ValidateOtpResponse)
def validate_otp(
    *,
    session: Session = Depends(get_session),
    service: OtpService = Depends(get_otp_service),
    request: ValidateOtpRequest
):
    try:
        outcome = service.validate(session, request.phone_number, request.country_code, request.otp)
    except OtpError as e:
        return _validate_response(e.status_code, ValidateOtpResponse(success=False, message=e.message))
    except Exception:
        logger.exception("Error in validate-otp")
        return _validate_response(500, ValidateOtpResponse(success=False, message="Internal server error"))

    return _validate_response(outcome.status_code, ValidateOtpResponse(
        success=outcome.valid,
        message=outcome.message,
        valid=outcome.valid,
    ))
