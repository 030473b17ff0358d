import logging
import os

logger = logging.getLogger(__name__)


def _canon_prefix(val):
    """
    Normalize API prefix to always be exactly like '/api':
      - defaults to '/api' when unset/empty
      - ensures a single leading slash
      - removes any trailing slash (except for root)
    """
    val = (val or "/api").strip()
    if not val.startswith("/"):
        val = "/" + val
    if len(val) > 1 and val.endswith("/"):
        val = val[:-1]
    return val


def _positive_int(env_var: str, default: int) -> int:
    raw_value = os.getenv(env_var)
    if raw_value is None or not raw_value.strip():
        return default

    try:
        value = int(raw_value)
    except ValueError:
        logger.warning(
            "%s is not a valid integer (got %r); defaulting to %d",
            env_var,
            raw_value,
            default,
        )
        return default

    if value <= 0:
        logger.warning("%s must be positive; defaulting to %d", env_var, default)
        return default

    return value


def sql_debug_enabled() -> bool:
    return (os.getenv("SQL_DEBUG") or "").lower() in ("1", "true", "yes")


def get_database_url() -> str:
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise RuntimeError("DATABASE_URL environment variable is required")
    return database_url


API_PREFIX = _canon_prefix(os.getenv("API_PREFIX"))

DEFAULT_RATING = _positive_int("DEFAULT_RATING", 1200)
CONSOLIDATION_BATCH_SIZE = _positive_int("CONSOLIDATION_BATCH_SIZE", 200)
