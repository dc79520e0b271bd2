import asyncio
from fastapi import HTTPException, status
from functools import wraps
from typing import Callable
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

class ForbiddenError(HTTPException):
    """Custom exception for forbidden errors"""
    def __init__(self, detail: str = "Not authorized to access this resource"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class MeteringError(Exception):
    """Base class for usage metering and billing sync errors"""


class TransientStoreError(MeteringError):
    """The persistent store is unreachable or timed out.

    The metered action that triggered the store call is neither confirmed
    allowed nor denied; callers decide the policy.
    """


class InvalidSignatureError(MeteringError):
    """A billing webhook payload failed signature verification"""


class UnknownTierError(MeteringError):
    """A tier or price id outside the known catalog reached the entitlement table"""
    def __init__(self, tier: object):
        self.tier = tier
        super().__init__(f"Unknown subscription tier: {tier!r}")


class EmailSendError(MeteringError):
    """Outbound email delivery failed"""


_TRANSIENT_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError, asyncio.TimeoutError, ConnectionError)


def _is_transient(exc: Exception) -> bool:
    if isinstance(exc, _TRANSIENT_ERRORS):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


def translate_store_errors(func: Callable) -> Callable:
    """Decorator to surface store outages as TransientStoreError"""
    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except MeteringError:
            raise
        except Exception as e:
            if _is_transient(e):
                raise TransientStoreError(f"Store unavailable in {func.__qualname__}: {e}") from e
            raise
    return wrapper
