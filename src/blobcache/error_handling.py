"""
Standardized Error Handling for blobcache
=========================================

This module defines the exception taxonomy shared by the blob store, the
metadata index and the cache orchestrator, together with helpers that convert
unexpected exceptions into it and log operation timings.

Taxonomy:
- CacheStorageError: filesystem failure other than "does not exist"
- BlobNotFoundError: the blob file for a key does not exist
- MetadataNotFoundError: the metadata index has no record for a key
- CacheCorruptionError: a metadata record could not be decoded
- CacheBackendError: the metadata engine failed for another reason
"""

import functools
import logging
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Optional, Type

logger = logging.getLogger(__name__)


class CacheError(Exception):
    """Base exception for all cache-related errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.context = context or {}
        super().__init__(message)

        # Misses are routine on a read-heavy cache, so keep this at debug
        context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        logger.debug(
            f"Cache error: {message}" + (f" ({context_str})" if context_str else "")
        )


class CacheConfigurationError(CacheError):
    """Raised when cache configuration is invalid."""

    pass


class CacheStorageError(CacheError):
    """Raised when a filesystem operation on a blob fails."""

    pass


class EntryNotFoundError(CacheError):
    """Common parent for the two "entry not found" conditions."""

    pass


class BlobNotFoundError(EntryNotFoundError):
    """Raised when the blob file for a key does not exist."""

    pass


class MetadataNotFoundError(EntryNotFoundError):
    """Raised when the metadata index holds no record for a key."""

    pass


class CacheMetadataError(CacheError):
    """Raised when cache metadata operations fail."""

    pass


class CacheCorruptionError(CacheMetadataError):
    """Raised when a stored metadata record cannot be decoded.

    ``field`` names the offending document field, or is None when the
    document itself is malformed.
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.field = field
        context = dict(context or {})
        if field is not None:
            context.setdefault("field", field)
        super().__init__(message, context)


class CacheBackendError(CacheMetadataError):
    """Raised when the metadata engine reports an internal failure."""

    pass


def with_error_handling(
    error_type: Type[CacheError] = CacheError,
    context: Optional[Dict[str, Any]] = None,
):
    """
    Decorator converting unexpected exceptions into ``error_type``.

    CacheError subclasses pass through untouched.

    Args:
        error_type: Type of CacheError to raise
        context: Additional context to include in error
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except CacheError:
                raise
            except Exception as e:
                error_context = (context or {}).copy()
                error_context.update(
                    {
                        "function": func.__name__,
                        "args_count": len(args),
                        "kwargs_keys": list(kwargs.keys()),
                        "original_error": str(e),
                        "original_error_type": type(e).__name__,
                    }
                )
                raise error_type(f"Error in {func.__name__}: {e}", error_context) from e

        return wrapper

    return decorator


@contextmanager
def cache_operation_context(operation: str, **context):
    """
    Context manager for cache operations with standardized logging.

    Args:
        operation: Description of the operation
        **context: Additional context for logging
    """
    logger.debug(f"Starting cache operation: {operation}", extra=context)
    start_time = time.perf_counter()

    try:
        yield
    except EntryNotFoundError:
        logger.debug(f"Cache operation missed: {operation}", extra=context)
        raise
    except CacheError:
        logger.error(f"Cache operation failed: {operation}", extra=context)
        raise
    except Exception as e:
        logger.error(
            f"Unexpected error in cache operation: {operation} - {e}", extra=context
        )
        raise

    duration = time.perf_counter() - start_time
    logger.debug(
        f"Cache operation completed: {operation} ({duration:.3f}s)", extra=context
    )
