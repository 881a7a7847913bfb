from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

db = SQLAlchemy()
migrate = Migrate()

# In-memory rate limiter (sufficient for single-instance deployments).
# Toggle with RATELIMIT_ENABLED / RATELIMIT_STORAGE_URI in config.
limiter = Limiter(get_remote_address)
