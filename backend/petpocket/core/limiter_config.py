from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from petpocket.core.config import get_limiter_storage_uri

# Global Limiter instance to be imported by controllers.
# create_app binds it and disables it when RATE_LIMIT_ENABLED=0.
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["200 per hour", "50 per minute"],
    storage_uri=get_limiter_storage_uri(),
    enabled=True,
)

# Stricter budget for credential endpoints
AUTH_LIMIT = "10 per minute"
WRITE_LIMIT = "30 per minute"
