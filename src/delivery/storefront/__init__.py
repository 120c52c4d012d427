"""Storefront adapter registry — pluggable access to carts, catalogue and addresses."""

import os
from contextlib import contextmanager

import structlog
from protean.exceptions import ProteanException

from delivery.errors import ExternalServiceError

logger = structlog.get_logger(__name__)

_storefront_instance = None


def get_storefront():
    """Return the configured storefront adapter (singleton).

    Uses FakeStorefront by default. In production, configure via
    STOREFRONT_ADAPTER environment variable.
    """
    global _storefront_instance
    if _storefront_instance is None:
        adapter = os.environ.get("STOREFRONT_ADAPTER", "fake")
        if adapter == "fake":
            from delivery.storefront.fake_adapter import FakeStorefront

            _storefront_instance = FakeStorefront()
        else:
            raise ValueError(f"Unknown storefront adapter: {adapter}")
    return _storefront_instance


def reset_storefront():
    """Reset the storefront singleton (useful for testing)."""
    global _storefront_instance
    _storefront_instance = None


@contextmanager
def storefront_call(operation: str, **context):
    """Wrap a storefront call so infrastructure failures surface as ExternalServiceError."""
    try:
        yield
    except ProteanException:
        raise
    except Exception as e:
        logger.error("Storefront call failed", operation=operation, error=str(e), **context)
        raise ExternalServiceError({"storefront": [f"{operation} failed: {e}"]}) from e
