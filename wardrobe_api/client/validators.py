import re
from typing import Optional

_PHONE_RE = re.compile(r"[0-9]{10,15}")
_PHONE_SEPARATORS_RE = re.compile(r"[\s-]")

def validate_required(value: Optional[str], field_name: str) -> Optional[str]:
    if not value or not value.strip():
        return f"{field_name} is required"
    return None

def validate_otp(otp: Optional[str], length: int = 4) -> Optional[str]:
    """Return an error message unless *otp* is exactly *length* ASCII digits."""
    if not otp or len(otp) != length or not re.fullmatch(r"[0-9]+", otp):
        return f"Please enter a valid {length}-digit OTP"
    return None

def validate_phone_number(phone: Optional[str]) -> Optional[str]:
    if not phone or not phone.strip():
        return "Phone number is required"
    if not _PHONE_RE.fullmatch(_PHONE_SEPARATORS_RE.sub("", phone)):
        return "Please enter a valid phone number"
    return None

def mask_phone_number(phone: str) -> str:
    # 9876543210 -> 987****210
    if len(phone) <= 6:
        return phone
    masked = "*" * (len(phone) - 6)
    return phone[:3] + masked + phone[-3:]
