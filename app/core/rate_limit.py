"""
Rate limiting for the API.

Two layers share the `limits` library underneath:
- slowapi throttles the auth endpoints per client IP.
- FlowRateLimiter throttles token issuance per (flow, email) with a
  sliding window, so a flooded inbox is capped regardless of source IP.
"""
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional, Union

from limits import RateLimitItem, parse
from limits.storage import Storage, storage_from_string
from limits.strategies import MovingWindowRateLimiter
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.core.config import settings
from app.core.result import Err, ErrorKind, Ok, Result

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)

AUTH_RATE_LIMIT = "10/minute"
PASSWORD_RATE_LIMIT = "5/minute"

EMAIL_VERIFICATION_FLOW = "email-verification"
PASSWORD_RESET_FLOW = "password-reset"
DOCTOR_APPROVAL_FLOW = "doctor-approval"


@dataclass(frozen=True)
class Allowed:
    remaining: int


@dataclass(frozen=True)
class Limited:
    """Seconds round up for Retry-After, minutes round down for the message"""

    retry_after_seconds: int
    retry_after_minutes: int

    @classmethod
    def from_remaining(cls, remaining: float) -> "Limited":
        remaining = max(0.0, remaining)
        return cls(
            retry_after_seconds=math.ceil(remaining),
            retry_after_minutes=int(remaining // 60),
        )


Decision = Union[Allowed, Limited]


class FlowRateLimiter:
    """Sliding-window limiter keyed by (flow, email)"""

    def __init__(
        self,
        flow: str,
        limit: Union[str, RateLimitItem],
        storage: Storage,
        clock: Callable[[], float] = time.time,
    ):
        self.flow = flow
        self.item = parse(limit) if isinstance(limit, str) else limit
        self.strategy = MovingWindowRateLimiter(storage)
        self.clock = clock

    @staticmethod
    def _key(email: str) -> str:
        return email.strip().lower()

    def check(self, email: str) -> Result[Decision]:
        """
        Count one request for `email` and decide whether it may proceed.

        The hit is recorded atomically by the storage backend, so concurrent
        requests never push the window past its ceiling.
        """
        key = self._key(email)
        try:
            if self.strategy.hit(self.item, self.flow, key):
                _, remaining = self.strategy.get_window_stats(self.item, self.flow, key)
                return Ok(Allowed(remaining=remaining))
            reset_time, _ = self.strategy.get_window_stats(self.item, self.flow, key)
        except Exception:
            logger.exception("Rate limiter backend failed for flow %s", self.flow)
            return Err(ErrorKind.DEPENDENCY, "Rate limiter unavailable")

        limited = Limited.from_remaining(reset_time - self.clock())
        logger.info(
            "Flow %s limited for %s, retry in %ss", self.flow, key, limited.retry_after_seconds
        )
        return Ok(limited)

    def reset(self, email: str) -> None:
        """Forget the recorded hits of one email in this flow"""
        self.strategy.clear(self.item, self.flow, self._key(email))


_flow_storage: Optional[Storage] = None


def get_flow_storage() -> Storage:
    global _flow_storage
    if _flow_storage is None:
        _flow_storage = storage_from_string(settings.rate_limit_storage_uri)
    return _flow_storage


def build_flow_limiters(storage: Storage) -> dict[str, FlowRateLimiter]:
    return {
        EMAIL_VERIFICATION_FLOW: FlowRateLimiter(
            EMAIL_VERIFICATION_FLOW, settings.email_verification_rate_limit, storage
        ),
        PASSWORD_RESET_FLOW: FlowRateLimiter(
            PASSWORD_RESET_FLOW, settings.password_reset_rate_limit, storage
        ),
        DOCTOR_APPROVAL_FLOW: FlowRateLimiter(
            DOCTOR_APPROVAL_FLOW, settings.doctor_approval_rate_limit, storage
        ),
    }
