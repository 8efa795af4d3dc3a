import logging
from datetime import datetime
from typing import Callable, Optional

from app.core.result import Err, ErrorKind, Ok, Result
from app.models import TokenPurpose
from app.services.token_store import StoreUnavailable, TokenStore
from app.services.users import UserService

logger = logging.getLogger(__name__)

TOKEN_NOT_FOUND = "Token not found"
TOKEN_EXPIRED = "Token has expired"
USER_NOT_FOUND = "User not found"
EMAIL_VERIFIED = "Email verified"
PASSWORD_UPDATED = "Password updated!"


class TokenVerifier:
    """
    Consumes a submitted token and applies the state change it authorises.

    Lookup is by token value. An expired token is reported and left in the
    store; it is superseded by the next issuance or removed by
    `SQLTokenStore.purge_expired`. On success the user mutation and the token
    deletion commit together, so a token is either fully consumed or not at
    all.
    """

    def __init__(
        self,
        store: TokenStore,
        users: UserService,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.store = store
        self.users = users
        self.clock = clock

    def verify(self, purpose: TokenPurpose, token: str, new_password: Optional[str] = None) -> Result[str]:
        if purpose is TokenPurpose.PASSWORD_RESET and not new_password:
            return Err(ErrorKind.VALIDATION, "Invalid fields")

        now = self.clock()
        try:
            with self.store.transaction():
                record = self.store.get_by_token(purpose, token)
                if not record:
                    return Err(ErrorKind.NOT_FOUND, TOKEN_NOT_FOUND)

                if record.is_expired(now):
                    return Err(ErrorKind.EXPIRED, TOKEN_EXPIRED)

                user = self.users.get_user_by_email(record.email)
                if not user:
                    return Err(ErrorKind.NOT_FOUND, USER_NOT_FOUND)

                if purpose is TokenPurpose.PASSWORD_RESET:
                    self.users.set_password(user, password=new_password, now=now)
                    message = PASSWORD_UPDATED
                else:
                    self.users.mark_email_verified(user, email=record.email, now=now)
                    message = EMAIL_VERIFIED

                email = record.email
                self.store.delete(record)
        except StoreUnavailable:
            logger.exception("Could not confirm %s token", purpose.value)
            return Err(ErrorKind.DEPENDENCY, "Something went wrong. Please try again later")

        logger.info("Confirmed %s token for %s", purpose.value, email)
        return Ok(message)
