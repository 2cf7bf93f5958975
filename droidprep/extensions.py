"""Flask extensions and shared instances"""

from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

GITHUB_EXTENSION = "droidprep.github"

# Storage is configured per app through RATELIMIT_STORAGE_URI
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["1000 per hour"],
    strategy="fixed-window",
)
