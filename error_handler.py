"""
Driver Error Handling
=====================
Error taxonomy and fail-soft helpers for the device drivers.

Based on ZHA patterns:
- Transient vs permanent send failure classification
- Nothing raised inside a handler may take a device down
- Proper logging
"""
import asyncio
import inspect
import logging
import functools
from typing import Callable, Any, Dict
from bellows.ash import NcpFailure
from zigpy.exceptions import DeliveryError

logger = logging.getLogger("error_handler")


class DriverError(Exception):
    """Base class for driver-level errors."""
    pass


class MalformedDatapoint(DriverError):
    """Raised when a Tuya datapoint value cannot be decoded per its type."""
    pass


class ErrorHandler:
    """
    Classifies and records failures of fire-and-forget sends.

    Sends are never retried here: the fallback poll re-reads everything
    eventually, so a lost frame only delays an update.
    """

    # Transient errors, device may simply be asleep or out of range
    TRANSIENT_ERRORS = {
        'DELIVERY_FAILED',
        'MAC_NO_ACK',
        'MAC_CHANNEL_ACCESS_FAILURE',
        'NETWORK_BUSY',
    }

    def __init__(self):
        self.stats = {
            'total_failures': 0,
            'transient_failures': 0,
            'errors_by_type': {},
        }

    def is_transient(self, error: Exception) -> bool:
        """
        Determine if an error is transient.

        Args:
            error: The exception

        Returns:
            True if error is transient
        """
        if isinstance(error, (DeliveryError, NcpFailure, asyncio.TimeoutError)):
            return True

        error_str = str(error).upper()
        for pattern in self.TRANSIENT_ERRORS:
            if pattern in error_str:
                return True

        return False

    def record_error(self, error: Exception, context: str = "") -> bool:
        """Record error in statistics and log it. Returns True if transient."""
        error_type = type(error).__name__
        self.stats['total_failures'] += 1
        self.stats['errors_by_type'][error_type] = \
            self.stats['errors_by_type'].get(error_type, 0) + 1

        transient = self.is_transient(error)
        if transient:
            self.stats['transient_failures'] += 1
            logger.warning(f"Transient send failure: {error}" + (f" ({context})" if context else ""))
        else:
            logger.error(f"Send failed: {error}" + (f" ({context})" if context else ""))
        return transient

    def get_stats(self) -> Dict[str, Any]:
        """Get error handling statistics."""
        return {**self.stats, 'errors_by_type': dict(self.stats['errors_by_type'])}


# Global error handler instance
_error_handler = ErrorHandler()


def get_error_handler() -> ErrorHandler:
    return _error_handler


def fail_soft(func: Callable) -> Callable:
    """
    Decorator for driver entry points (reports, commands, lifecycle).

    Any exception is logged with the device context and swallowed, leaving
    state as if no update occurred.

    Usage:
        @fail_soft
        def refresh(self):
            ...
    """
    def _context(args) -> str:
        context = func.__name__
        if args and hasattr(args[0], 'device_id'):
            context += f"({args[0].device_id})"
        return context

    if inspect.iscoroutinefunction(func):
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Suppressed error in {_context(args)}: {e}", exc_info=True)
                return None
        return async_wrapper

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except Exception as e:
            logger.error(f"Suppressed error in {_context(args)}: {e}", exc_info=True)
            return None

    return wrapper
