"""Record store dependency for the HTTP driver."""

from functools import lru_cache

from fashion_analytics.core.logging import get_logger
from fashion_analytics.features.records.loader import load_staging_dir
from fashion_analytics.features.records.store import RecordStore

logger = get_logger(__name__)


@lru_cache
def get_record_store() -> RecordStore:
    """Load the staging tables once and share the read-only store.

    Raises:
        IngestError: If the staging directory cannot be loaded. Not cached,
            so the next request retries.
    """
    result = load_staging_dir()
    if result.rejected:
        logger.warning("records.store_loaded_with_rejects", rejected=len(result.rejected))
    return result.store
