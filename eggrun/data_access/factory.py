from eggrun.config import settings
from eggrun.data_access.dal import DataAccessLayer
from eggrun.data_access.json_dal import JsonDal
from eggrun.infra import log_utils

try:
    from eggrun.data_access.postgres_dal import PostgresDal
except ImportError:  # pragma: no cover - Postgres optional
    PostgresDal = None


def get_dal() -> DataAccessLayer:
    """Select the appropriate DAL based on environment settings."""
    if (
        PostgresDal
        and settings.DATABASE_URL
        and settings.ENVIRONMENT == "production"
    ):
        try:
            return PostgresDal()
        except Exception as e:  # pragma: no cover - fallback
            log_utils.log_message(
                f"Postgres DAL init failed: {e}. Falling back to JSON.", "WARN"
            )
    return JsonDal()
