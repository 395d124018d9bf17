"""Runtime configuration for the recurring task engine."""
import os
from dotenv import load_dotenv

# Load environment variables but prioritize local development
load_dotenv()

DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///./recurring_engine.db")

ENVIRONMENT = os.environ.get("ENVIRONMENT", "development")
FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:3000")

# Civil dates are resolved in this zone (pytz name)
ENGINE_TIMEZONE = os.environ.get("ENGINE_TIMEZONE", "UTC")

PREVIEW_DEFAULT_COUNT = int(os.environ.get("PREVIEW_DEFAULT_COUNT", "5"))
PREVIEW_MAX_COUNT = int(os.environ.get("PREVIEW_MAX_COUNT", "50"))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
