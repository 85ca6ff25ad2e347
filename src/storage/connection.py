"""Process-wide record store handle.

``connect`` initializes the BigQuery client and tables once. Later calls
return the same handle, or re-raise the failure of the first attempt.
The handle is passed explicitly to everything that needs it.
"""

import logging
from typing import Any, Optional

from src.errors import StoreError
from src.storage.bigquery_client import BigQueryClient

logger = logging.getLogger(__name__)

_handle: Optional[BigQueryClient] = None
_init_error: Optional[StoreError] = None


def connect(config: dict[str, Any]) -> BigQueryClient:
    """Return the ready store handle, initializing it on first use.

    Raises:
        StoreError: if initialization failed (now or on an earlier call).
    """
    global _handle, _init_error

    if _handle is not None:
        return _handle
    if _init_error is not None:
        raise _init_error

    try:
        gcp = config["gcp"]
        client = BigQueryClient(
            project_id=gcp["project_id"],
            dataset_id=gcp["bigquery_dataset"],
            location=gcp.get("region", "us-east4"),
        )
        client.ensure_tables_exist()
    except KeyError as e:
        _init_error = StoreError(f"Missing store configuration key: {e}")
        logger.error("Store initialization failed: %s", _init_error)
        raise _init_error from e
    except Exception as e:
        _init_error = StoreError(f"Store initialization failed: {e}")
        logger.error("Store initialization failed: %s", e, exc_info=True)
        raise _init_error from e

    _handle = client
    logger.info("Connected to record store %s", client.dataset_ref)
    return _handle


def reset_connection() -> None:
    """Forget the cached handle and any initialization failure."""
    global _handle, _init_error
    _handle = None
    _init_error = None
