import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import requests

from ..config import (
    SMS_PROVIDER,
    TWILIO_ACCOUNT_SID,
    TWILIO_AUTH_TOKEN,
    TWILIO_FROM,
    TWILIO_MESSAGING_SID,
)

logger = logging.getLogger(__name__)

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"

@dataclass(frozen=True)
class DeliveryStatus:
    """Outcome of handing a code to the SMS gateway."""
    delivered: bool
    reason: Optional[str] = None

    @classmethod
    def ok(cls) -> "DeliveryStatus":
        return cls(delivered=True)

    @classmethod
    def failed(cls, reason: str) -> "DeliveryStatus":
        return cls(delivered=False, reason=reason)

    @property
    def label(self) -> str:
        return "delivered" if self.delivered else "failed"


class SmsSender(Protocol):
    def send_otp(self, phone_number: str, code: str) -> DeliveryStatus:
        ...


class MockSmsSender:
    def send_otp(self, phone_number: str, code: str) -> DeliveryStatus:
        logger.info("[MOCK SMS] Sending OTP %s to %s", code, phone_number)
        return DeliveryStatus.ok()


class TwilioSmsSender:
    def __init__(
        self,
        account_sid: Optional[str] = TWILIO_ACCOUNT_SID,
        auth_token: Optional[str] = TWILIO_AUTH_TOKEN,
        from_number: Optional[str] = TWILIO_FROM,
        messaging_sid: Optional[str] = TWILIO_MESSAGING_SID,
        timeout: int = 10
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.messaging_sid = messaging_sid
        self.timeout = timeout

    def send_otp(self, phone_number: str, code: str) -> DeliveryStatus:
        if not self.account_sid or not self.auth_token:
            return DeliveryStatus.failed("Missing Twilio credentials")

        data = {
            "To": phone_number,
            "Body": f"Your verification code is {code}",
        }
        # A messaging service takes precedence over a single sender number
        if self.messaging_sid:
            data["MessagingServiceSid"] = self.messaging_sid
        elif self.from_number:
            data["From"] = self.from_number
        else:
            return DeliveryStatus.failed("Missing TWILIO_FROM or TWILIO_MESSAGING_SID")

        try:
            resp = requests.post(
                TWILIO_MESSAGES_URL.format(sid=self.account_sid),
                data=data,
                auth=(self.account_sid, self.auth_token),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            return DeliveryStatus.failed(f"Twilio request failed: {e}")

        if resp.status_code >= 400:
            return DeliveryStatus.failed(f"Twilio error {resp.status_code}: {resp.text}")
        return DeliveryStatus.ok()


def get_sms_sender() -> SmsSender:
    if SMS_PROVIDER == "twilio":
        return TwilioSmsSender()
    return MockSmsSender()
