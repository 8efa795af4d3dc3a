"""
Request handlers behind the account endpoints.

Each issuance flow runs strictly in order: user lookup, per-email rate
limit, token issuance, email. A rate-limited request stops before touching
the token store or the mailer.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, Mapping

from app.core.config import settings
from app.core.rate_limit import (
    DOCTOR_APPROVAL_FLOW,
    EMAIL_VERIFICATION_FLOW,
    PASSWORD_RESET_FLOW,
    FlowRateLimiter,
    Limited,
)
from app.core.result import Err, ErrorKind, Ok, Result
from app.core.security import create_access_token
from app.models import TokenPurpose, User, UserRole
from app.services.email_service import SEND_FAILED, Notifier
from app.services.token_store import StoreUnavailable
from app.services.tokens import TokenIssuer
from app.services.users import EmailInUse, UserService, normalize_email
from app.services.verification import TokenVerifier

logger = logging.getLogger(__name__)

EMAIL_NOT_FOUND = "Email not found"
EMAIL_IN_USE = "Email already in use"
INVALID_CREDENTIALS = "Invalid email or password"
CONFIRMATION_SENT = "Confirmation email sent!"
RESET_SENT = "Reset email sent!"
DOCTOR_REGISTRATION_SENT = "Doctor registration email sent!"
EMAIL_NOT_VERIFIED = "Email not verified. Check your inbox"
CONFIRM_EMAIL = "Please confirm your email address"
STORE_FAILURE = "Something went wrong. Please try again later"


def rate_limited_message(minutes: int) -> str:
    return f"Try the last code sent to your email or wait {minutes}m"


class AccountFlows:
    def __init__(
        self,
        users: UserService,
        issuer: TokenIssuer,
        verifier: TokenVerifier,
        notifier: Notifier,
        limiters: Mapping[str, FlowRateLimiter],
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.users = users
        self.issuer = issuer
        self.verifier = verifier
        self.notifier = notifier
        self.limiters = limiters
        self.clock = clock

    def _issue_and_notify(self, purpose: TokenPurpose, user: User) -> Result[None]:
        issued = self.issuer.issue(purpose, user.email)
        if isinstance(issued, Err):
            return issued

        sent = self.notifier.send(
            purpose,
            user.email,
            issued.value.token,
            {"name": user.first_name, "ttl_minutes": self.issuer.ttl_minutes[purpose]},
        )
        if isinstance(sent, Err):
            # the token stays valid; the user can still confirm with it
            logger.warning("Token issued but %s email to %s failed: %s", purpose.value, user.email, sent.detail)
            return Err(ErrorKind.DEPENDENCY, SEND_FAILED)
        return Ok(None)

    def _request_token(self, flow: str, purpose: TokenPurpose, email: str, success: str) -> Result[str]:
        email = normalize_email(email)
        try:
            user = self.users.get_user_by_email(email)
        except StoreUnavailable:
            logger.exception("User lookup failed for %s", email)
            return Err(ErrorKind.DEPENDENCY, STORE_FAILURE)

        if not user:
            return Err(ErrorKind.NOT_FOUND, EMAIL_NOT_FOUND)

        decision = self.limiters[flow].check(email)
        if isinstance(decision, Err):
            return decision
        if isinstance(decision.value, Limited):
            limited = decision.value
            return Err(
                ErrorKind.RATE_LIMITED,
                rate_limited_message(limited.retry_after_minutes),
                retry_after=limited.retry_after_seconds,
            )

        notified = self._issue_and_notify(purpose, user)
        if isinstance(notified, Err):
            return notified
        return Ok(success)

    def request_email_verification(self, email: str) -> Result[str]:
        return self._request_token(
            EMAIL_VERIFICATION_FLOW, TokenPurpose.EMAIL_VERIFICATION, email, CONFIRMATION_SENT
        )

    def request_password_reset(self, email: str) -> Result[str]:
        return self._request_token(PASSWORD_RESET_FLOW, TokenPurpose.PASSWORD_RESET, email, RESET_SENT)

    def approve_doctor(self, email: str) -> Result[str]:
        return self._request_token(
            DOCTOR_APPROVAL_FLOW, TokenPurpose.DOCTOR_REGISTRATION, email, DOCTOR_REGISTRATION_SENT
        )

    def confirm_email(self, token: str) -> Result[str]:
        return self.verifier.verify(TokenPurpose.EMAIL_VERIFICATION, token)

    def confirm_doctor_registration(self, token: str) -> Result[str]:
        return self.verifier.verify(TokenPurpose.DOCTOR_REGISTRATION, token)

    def confirm_new_password(self, token: str, password: str) -> Result[str]:
        return self.verifier.verify(TokenPurpose.PASSWORD_RESET, token, new_password=password)

    def register(self, *, name: str, email: str, password: str, role: UserRole = UserRole.PATIENT) -> Result[str]:
        """Create an unverified patient or doctor and send the first verification code"""
        email = normalize_email(email)
        try:
            if self.users.get_user_by_email(email):
                return Err(ErrorKind.CONFLICT, EMAIL_IN_USE)
            self.users.create_user(name=name, email=email, password=password, role=role)
        except EmailInUse:
            return Err(ErrorKind.CONFLICT, EMAIL_IN_USE)
        except StoreUnavailable:
            logger.exception("Registration failed for %s", email)
            return Err(ErrorKind.DEPENDENCY, STORE_FAILURE)

        logger.info("Registered %s as %s", email, role.value)
        return self.request_email_verification(email)

    def login(self, email: str, password: str) -> Result[dict]:
        """
        Exchange credentials for an access token.

        Unverified accounts get a fresh verification code instead, unless the
        verification flow is already rate limited for that email.
        """
        try:
            user = self.users.authenticate_user(email, password)
        except StoreUnavailable:
            logger.exception("Login lookup failed for %s", email)
            return Err(ErrorKind.DEPENDENCY, STORE_FAILURE)

        if not user:
            return Err(ErrorKind.UNAUTHORIZED, INVALID_CREDENTIALS)

        if not user.email_verified:
            decision = self.limiters[EMAIL_VERIFICATION_FLOW].check(user.email)
            if isinstance(decision, Err):
                return decision
            if isinstance(decision.value, Limited):
                return Err(ErrorKind.FORBIDDEN, EMAIL_NOT_VERIFIED)

            notified = self._issue_and_notify(TokenPurpose.EMAIL_VERIFICATION, user)
            if isinstance(notified, Err):
                return notified
            return Err(ErrorKind.FORBIDDEN, CONFIRM_EMAIL)

        try:
            self.users.record_login(user, now=self.clock())
        except StoreUnavailable:
            logger.exception("Could not record login for %s", user.email)
            return Err(ErrorKind.DEPENDENCY, STORE_FAILURE)

        access_token = create_access_token(
            data={"sub": str(user.id), "email": user.email, "role": user.role.value},
            expires_delta=timedelta(minutes=settings.access_token_expire_minutes),
        )
        return Ok({
            "access_token": access_token,
            "token_type": "bearer",
            "expires_in": settings.access_token_expire_minutes * 60,
        })
