"""Email + one-time-code login, as driven by the login screens.

    EMAIL_ENTRY --request_otp--> OTP_ENTRY --verify_otp--> AUTHENTICATED
    OTP_ENTRY --back--> EMAIL_ENTRY

A 409 from the server means a code is already on its way; the flow moves to
OTP_ENTRY without showing an error. Resends are throttled by a client-side
cooldown, verify attempts are not.
"""
import logging
import math
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from storepos.client.errors import ApiError, ClientError, ValidationError
from storepos.client.session import Session
from storepos.client.token_store import TokenPair

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class LoginStep(Enum):
    EMAIL_ENTRY = "email"
    OTP_ENTRY = "otp"
    AUTHENTICATED = "authenticated"


@dataclass
class FlowResult:
    ok: bool
    message: str = ""
    field: Optional[str] = None


class LoginFlow:
    def __init__(
        self,
        client,
        session: Session,
        resend_cooldown: float = 60,
        otp_length: int = 6,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.session = session
        self.resend_cooldown = resend_cooldown
        self.otp_length = otp_length
        self._otp_re = re.compile(r"^\d{%d}$" % otp_length)
        self.clock = clock
        self.step = LoginStep.EMAIL_ENTRY
        self.email: Optional[str] = None
        self._sent_at: Optional[float] = None

    @staticmethod
    def _check_email(email: str) -> str:
        email = (email or "").strip().lower()
        if not email:
            raise ValidationError("email", "Email is required")
        if not EMAIL_RE.match(email):
            raise ValidationError("email", "Please enter a valid email address")
        return email

    def resend_remaining(self) -> int:
        if self._sent_at is None:
            return 0
        left = self.resend_cooldown - (self.clock() - self._sent_at)
        return max(0, math.ceil(left))

    def request_otp(self, email: str) -> FlowResult:
        try:
            email = self._check_email(email)
            response = self.client.generate_otp(email)
        except ValidationError as e:
            return FlowResult(False, e.message, e.field)
        except ApiError as e:
            if e.status != 409:
                return FlowResult(False, e.message)
            logger.info("OTP already outstanding for %s, continuing", email)
            response = {}
        except ClientError as e:
            return FlowResult(False, e.message)

        self.email = email
        self.step = LoginStep.OTP_ENTRY
        self._sent_at = self.clock()
        return FlowResult(True, response.get("message", ""))

    def verify_otp(self, code: str) -> FlowResult:
        if self.step is not LoginStep.OTP_ENTRY:
            return FlowResult(False, "Request a code first")

        code = (code or "").strip()
        if not self._otp_re.match(code):
            return FlowResult(False, f"Enter the {self.otp_length}-digit code from your email", "otp")

        try:
            data = self.client.verify_otp(self.email, code)
            tokens = TokenPair.from_dict(data)
            user = data["user"]
        except ClientError as e:
            return FlowResult(False, e.message)
        except (KeyError, ValueError):
            logger.warning("verify-otp response missing user or tokens")
            return FlowResult(False, "Unexpected response from server")

        self.session.login(user, tokens)
        self.step = LoginStep.AUTHENTICATED
        return FlowResult(True, data.get("message", ""))

    def resend_otp(self) -> FlowResult:
        if self.step is not LoginStep.OTP_ENTRY:
            return FlowResult(False, "Request a code first")

        remaining = self.resend_remaining()
        if remaining > 0:
            return FlowResult(False, f"Please wait {remaining}s before requesting a new code")

        try:
            response = self.client.resend_otp(self.email)
        except ClientError as e:
            return FlowResult(False, e.message)

        self._sent_at = self.clock()
        return FlowResult(True, response.get("message", ""))

    def back(self):
        self.step = LoginStep.EMAIL_ENTRY
        self._sent_at = None
