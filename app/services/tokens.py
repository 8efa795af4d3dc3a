import logging
import secrets
from datetime import datetime, timedelta
from typing import Callable, Mapping, Optional

from app.core.config import settings
from app.core.result import Err, ErrorKind, Ok, Result
from app.models import TokenBase, TokenPurpose
from app.services.token_store import StoreUnavailable, TokenStore
from app.services.users import normalize_email

logger = logging.getLogger(__name__)

CODE_MIN = 100000
CODE_MAX = 999999


def generate_numeric_code() -> str:
    """Six digits, never starting with 0"""
    return str(CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1))


def default_ttls() -> dict[TokenPurpose, int]:
    return {
        TokenPurpose.EMAIL_VERIFICATION: settings.email_verification_token_ttl_minutes,
        TokenPurpose.PASSWORD_RESET: settings.password_reset_token_ttl_minutes,
        TokenPurpose.DOCTOR_REGISTRATION: settings.doctor_register_token_ttl_minutes,
    }


class TokenIssuer:
    """Creates the single outstanding token of a purpose for an email"""

    def __init__(
        self,
        store: TokenStore,
        ttl_minutes: Optional[Mapping[TokenPurpose, int]] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
        generate: Optional[Callable[[], str]] = None,
    ):
        self.store = store
        self.ttl_minutes = dict(ttl_minutes or default_ttls())
        self.clock = clock
        self.generate = generate or generate_numeric_code

    def issue(self, purpose: TokenPurpose, email: str) -> Result[TokenBase]:
        """
        Replace any previous token of `purpose` for `email` with a fresh one.

        The delete and the insert share one transaction. If the store fails,
        nothing is written and an `Err(DEPENDENCY)` is returned; callers must
        not notify the user in that case.
        """
        email = normalize_email(email)
        expires = self.clock() + timedelta(minutes=self.ttl_minutes[purpose])
        try:
            with self.store.transaction():
                existing = self.store.get_by_email(purpose, email)
                if existing:
                    self.store.delete(existing)
                record = self.store.add(purpose, email=email, token=self.generate(), expires=expires)
        except StoreUnavailable:
            logger.exception("Could not issue %s token for %s", purpose.value, email)
            return Err(ErrorKind.DEPENDENCY, "Something went wrong. Please try again later")

        logger.info("Issued %s token for %s (expires %s)", purpose.value, email, expires.isoformat())
        return Ok(record)
