"""Phone-number OTP issuance and validation.

Both operations are stateless: every call reads and writes the ``otps`` table
through the session it is handed and keeps nothing in process.
"""
import hmac
import logging
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ..config import OTP_EXPIRE_MINUTES, OTP_LENGTH, OTP_MAX_ATTEMPTS
from ..models.otp import OtpRecord, as_utc, utcnow
from .sms import DeliveryStatus, SmsSender

logger = logging.getLogger(__name__)


class OtpError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)

class MissingFieldsError(OtpError):
    status_code = 400

class InvalidCodeFormatError(OtpError):
    status_code = 400

class OtpStoreError(OtpError):
    status_code = 500


class ValidationStatus(str, Enum):
    VALID = "valid"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    LOCKED_OUT = "locked_out"
    MISMATCH = "mismatch"

_STATUS_CODES = {
    ValidationStatus.VALID: 200,
    ValidationStatus.NOT_FOUND: 404,
    ValidationStatus.EXPIRED: 400,
    ValidationStatus.LOCKED_OUT: 400,
    ValidationStatus.MISMATCH: 400,
}

NOT_FOUND_MESSAGE = "No valid OTP found. Please request a new one."
EXPIRED_MESSAGE = "OTP has expired. Please request a new one."
LOCKED_OUT_MESSAGE = "Too many attempts. Please request a new OTP."
VALID_MESSAGE = "OTP validated successfully"

MIN_CODE_LENGTH = 4
MAX_CODE_LENGTH = 6

@dataclass(frozen=True)
class ValidationOutcome:
    status: ValidationStatus
    message: str

    @property
    def valid(self) -> bool:
        return self.status is ValidationStatus.VALID

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self.status]

@dataclass(frozen=True)
class IssueResult:
    code: str
    expires_at: datetime
    delivery: DeliveryStatus


def correlation_key(country_code: str, phone_number: str) -> str:
    # Plain concatenation, callers pass digits only
    return f"{country_code}{phone_number}"

def _present(*values: Optional[str]) -> bool:
    return all(value is not None and str(value).strip() for value in values)


class OtpService:
    def __init__(
        self,
        code_length: int = OTP_LENGTH,
        expiry_minutes: int = OTP_EXPIRE_MINUTES,
        max_attempts: int = OTP_MAX_ATTEMPTS,
        clock: Callable[[], datetime] = utcnow
    ):
        # generated_otp is a 6-character column
        if not MIN_CODE_LENGTH <= code_length <= MAX_CODE_LENGTH:
            raise ValueError(
                f"code_length must be between {MIN_CODE_LENGTH} and {MAX_CODE_LENGTH}, got {code_length}"
            )
        self.code_length = code_length
        self.expiry_minutes = expiry_minutes
        self.max_attempts = max_attempts
        self.clock = clock
        self._code_pattern = re.compile(rf"[0-9]{{{code_length}}}")

    def generate_code(self) -> str:
        """Uniform over the fixed-width numeral space, e.g. 1000-9999."""
        low = 10 ** (self.code_length - 1)
        return str(secrets.randbelow(9 * low) + low)

    def issue(
        self,
        session: Session,
        phone_number: Optional[str],
        country_code: Optional[str],
        sender: SmsSender
    ) -> IssueResult:
        """
        Invalidate any outstanding code for the number, store a fresh one and
        hand it to the SMS sender.

        The invalidation and the insert share one commit. Dispatch happens
        after the commit; its outcome is reported, never raised.
        """
        if not _present(phone_number, country_code):
            raise MissingFieldsError("Phone number and country code are required")

        key = correlation_key(country_code, phone_number)
        code = self.generate_code()
        now = as_utc(self.clock())
        expires_at = now + timedelta(minutes=self.expiry_minutes)

        try:
            outstanding = session.exec(
                select(OtpRecord).where(
                    (OtpRecord.phone_number == key) &
                    (OtpRecord.is_valid == True)  # noqa: E712
                )
            ).all()
            for record in outstanding:
                record.is_valid = False
                session.add(record)

            session.add(OtpRecord(
                phone_number=key,
                country_code=country_code,
                generated_otp=code,
                is_valid=True,
                attempts=0,
                created_at=now,
                expires_at=expires_at,
            ))
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("Error inserting OTP for %s: %s", key, e)
            raise OtpStoreError("Failed to generate OTP") from e

        logger.info("Issued OTP for %s (superseded %d)", key, len(outstanding))

        delivery = sender.send_otp(key, code)
        if not delivery.delivered:
            logger.warning("OTP delivery to %s failed: %s", key, delivery.reason)

        return IssueResult(code=code, expires_at=expires_at, delivery=delivery)

    def validate(
        self,
        session: Session,
        phone_number: Optional[str],
        country_code: Optional[str],
        otp: Optional[str]
    ) -> ValidationOutcome:
        """
        Check a submitted code against the newest outstanding one.

        Expiry is checked before the attempt budget, which is checked before
        the comparison. Every branch commits at most one change.
        """
        if not _present(phone_number, country_code, otp):
            raise MissingFieldsError("Phone number, country code, and OTP are required")

        if not self._code_pattern.fullmatch(otp):
            raise InvalidCodeFormatError(f"Please enter a valid {self.code_length}-digit OTP")

        key = correlation_key(country_code, phone_number)

        try:
            outcome = self._validate(session, key, otp)
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("Error validating OTP for %s: %s", key, e)
            raise OtpStoreError("Failed to validate OTP") from e

        logger.info("OTP validation for %s: %s", key, outcome.status.value)
        return outcome

    def _validate(self, session: Session, key: str, otp: str) -> ValidationOutcome:
        record = session.exec(
            select(OtpRecord)
            .where(
                (OtpRecord.phone_number == key) &
                (OtpRecord.is_valid == True)  # noqa: E712
            )
            .order_by(OtpRecord.created_at.desc(), OtpRecord.id.desc())
            .limit(1)
        ).first()

        if not record:
            return self._without_outstanding_code(session, key)

        now = as_utc(self.clock())

        if now > as_utc(record.expires_at):
            self._invalidate(session, record)
            return ValidationOutcome(ValidationStatus.EXPIRED, EXPIRED_MESSAGE)

        if record.attempts >= self.max_attempts:
            self._invalidate(session, record)
            return ValidationOutcome(ValidationStatus.LOCKED_OUT, LOCKED_OUT_MESSAGE)

        if not hmac.compare_digest(record.generated_otp, otp):
            record.attempts += 1
            # The failure that spends the budget locks the code out right away
            if record.attempts >= self.max_attempts:
                self._invalidate(session, record)
                return ValidationOutcome(ValidationStatus.LOCKED_OUT, LOCKED_OUT_MESSAGE)

            session.add(record)
            session.commit()
            if self._is_superseded_code(session, key, otp, record):
                return ValidationOutcome(ValidationStatus.NOT_FOUND, NOT_FOUND_MESSAGE)

            remaining = self.max_attempts - record.attempts
            return ValidationOutcome(
                ValidationStatus.MISMATCH,
                f"Incorrect OTP. {remaining} attempt{'s' if remaining != 1 else ''} remaining."
            )

        record.is_valid = False
        record.validated_at = now
        session.add(record)
        session.commit()
        return ValidationOutcome(ValidationStatus.VALID, VALID_MESSAGE)

    def _without_outstanding_code(self, session: Session, key: str) -> ValidationOutcome:
        # Keep reporting a lockout until a new code replaces the locked one
        latest = session.exec(
            select(OtpRecord)
            .where(OtpRecord.phone_number == key)
            .order_by(OtpRecord.created_at.desc(), OtpRecord.id.desc())
            .limit(1)
        ).first()

        if latest and latest.validated_at is None and latest.attempts >= self.max_attempts:
            return ValidationOutcome(ValidationStatus.LOCKED_OUT, LOCKED_OUT_MESSAGE)
        return ValidationOutcome(ValidationStatus.NOT_FOUND, NOT_FOUND_MESSAGE)

    def _is_superseded_code(self, session: Session, key: str, otp: str, current: OtpRecord) -> bool:
        # Only the row the current code replaced, and only if it was still
        # usable when it was replaced
        previous = session.exec(
            select(OtpRecord)
            .where(
                (OtpRecord.phone_number == key) &
                (OtpRecord.id < current.id)
            )
            .order_by(OtpRecord.id.desc())
            .limit(1)
        ).first()

        if not previous or previous.validated_at is not None:
            return False
        if previous.attempts >= self.max_attempts:
            return False
        if as_utc(previous.expires_at) < as_utc(current.created_at):
            return False
        return hmac.compare_digest(previous.generated_otp, otp)

    def _invalidate(self, session: Session, record: OtpRecord):
        record.is_valid = False
        session.add(record)
        session.commit()


def get_otp_service() -> OtpService:
    return OtpService()
