"""
Tagged results returned by the account-token services.

Services never raise across their public boundary; callers branch on
``isinstance(result, Err)`` and read ``kind`` to pick a response.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar, Union

T = TypeVar("T")


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    RATE_LIMITED = "rate_limited"
    DEPENDENCY = "dependency"
    CONFLICT = "conflict"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    detail: str
    retry_after: Optional[int] = None  # seconds, only for RATE_LIMITED


Result = Union[Ok[T], Err]
