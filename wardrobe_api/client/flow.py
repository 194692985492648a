"""State behind the OTP entry screen, without any rendering.

The screen forwards keystrokes to :meth:`OtpVerificationFlow.enter` and
:meth:`OtpVerificationFlow.backspace`, calls :meth:`OtpVerificationFlow.tick`
once per second, and draws whatever ``digits``, ``focus``, ``error`` and
``timer`` hold afterwards. Everything runs on the caller's thread.
"""
import logging
from typing import Callable, List, Optional

from ..config import OTP_LENGTH, OTP_RESEND_SECONDS
from .api import OtpApiClient, OtpApiError
from .validators import validate_otp

logger = logging.getLogger(__name__)

RESENT_NOTICE = "A new OTP has been sent to your phone number"


class OtpVerificationFlow:
    def __init__(
        self,
        api: OtpApiClient,
        phone_number: str,
        country_code: str,
        on_verified: Optional[Callable[[str], None]] = None,
        code_length: int = OTP_LENGTH,
        resend_seconds: int = OTP_RESEND_SECONDS
    ):
        self.api = api
        self.phone_number = phone_number
        self.country_code = country_code
        self.on_verified = on_verified
        self.code_length = code_length
        self.resend_seconds = resend_seconds

        self.is_validating = False
        self.is_resending = False
        self.verified = False
        self.notice: Optional[str] = None
        self.reset()

    def reset(self):
        """Called whenever the screen is shown."""
        self.digits: List[str] = [""] * self.code_length
        self.focus = 0
        self.error = ""
        self.timer = self.resend_seconds
        self.can_resend = self.timer <= 0

    @property
    def code(self) -> str:
        return "".join(self.digits)

    @property
    def is_complete(self) -> bool:
        return all(self.digits)

    def enter(self, index: int, text: str):
        if self.verified:
            return
        if text and not (text.isascii() and text.isdigit()):
            return

        # Pasting or typing over a filled box keeps the last digit
        if len(text) > 1:
            text = text[-1]

        self.digits[index] = text
        self.error = ""

        if not text:
            return
        if index < self.code_length - 1:
            self.focus = index + 1
        else:
            # An incomplete buffer is reported by submit without a request
            self.submit()

    def backspace(self, index: int):
        if not self.digits[index] and index > 0:
            self.focus = index - 1

    def submit(self) -> bool:
        """Validate the buffer; returns True once the code is accepted."""
        if self.verified:
            return False

        format_error = validate_otp(self.code, self.code_length)
        if format_error:
            self.error = format_error
            return False

        # One validation at a time
        if self.is_validating:
            return False

        self.is_validating = True
        self.error = ""
        try:
            response = self.api.validate_otp(self.phone_number, self.country_code, self.code)
            if response.get("success") and response.get("valid"):
                self.verified = True
                if self.on_verified:
                    self.on_verified(self.code)
                return True
            self.error = response.get("message") or "Incorrect OTP. Please try again."
            return False
        except OtpApiError as e:
            self.error = e.message or "Failed to validate OTP"
            return False
        finally:
            self.is_validating = False

    def tick(self) -> int:
        """Advance the resend countdown by one second."""
        if self.timer > 0:
            self.timer -= 1
            if self.timer == 0:
                self.can_resend = True
        return self.timer

    def resend(self) -> bool:
        if not self.can_resend or self.is_resending:
            return False

        self.is_resending = True
        try:
            response = self.api.send_otp(self.phone_number, self.country_code)
            if not response.get("success"):
                self.error = response.get("message") or "Failed to resend OTP"
                return False
            if response.get("codeForTesting"):
                logger.debug("New OTP for testing: %s", response["codeForTesting"])

            self.reset()
            self.notice = RESENT_NOTICE
            return True
        except OtpApiError as e:
            self.error = e.message or "Failed to resend OTP"
            return False
        finally:
            self.is_resending = False
