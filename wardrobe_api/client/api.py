import logging
from typing import Optional

import requests

from ..config import API_BASE_URL, API_KEY

logger = logging.getLogger(__name__)


class OtpApiError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class OtpApiClient:
    """Thin wrapper over the /send-otp and /validate-otp endpoints."""

    def __init__(self, base_url: str = API_BASE_URL, api_key: str = API_KEY, timeout: int = 20):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.session = requests.Session()

    def _post(self, path: str, payload: dict, fallback: str) -> tuple[int, dict]:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        try:
            r = self.session.post(f"{self.base_url}{path}", json=payload, headers=headers, timeout=self.timeout)
            j = r.json() if r.content else {}
        except (requests.RequestException, ValueError) as e:
            logger.error("Error calling %s: %s", path, e)
            raise OtpApiError(fallback) from e
        if not isinstance(j, dict):
            j = {}
        return r.status_code, j

    def send_otp(self, phone_number: str, country_code: str) -> dict:
        status_code, data = self._post(
            "/send-otp",
            {"phoneNumber": phone_number, "countryCode": country_code},
            "Failed to send OTP",
        )
        if not 200 <= status_code < 300:
            raise OtpApiError(data.get("message") or "Failed to send OTP", status_code)
        return data

    def validate_otp(self, phone_number: str, country_code: str, otp: str) -> dict:
        # 400 and 404 carry a user-facing message and are returned as-is
        status_code, data = self._post(
            "/validate-otp",
            {"phoneNumber": phone_number, "countryCode": country_code, "otp": otp},
            "Failed to validate OTP",
        )
        if not 200 <= status_code < 300 and status_code not in (400, 404):
            raise OtpApiError(data.get("message") or "Failed to validate OTP", status_code)
        return data
