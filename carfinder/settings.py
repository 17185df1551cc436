import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "5"))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "10"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

SITE_URL = os.getenv("SITE_URL", "http://localhost:3000")

RESEND_API_KEY = os.getenv("RESEND_API_KEY")
RESEND_FROM_EMAIL = os.getenv("RESEND_FROM_EMAIL")

# bearer secret for the /cron endpoints; unset leaves them open
CRON_SECRET = os.getenv("CRON_SECRET")

SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "1") == "1"
PRICE_HISTORY_INTERVAL_HOURS = int(os.getenv("PRICE_HISTORY_INTERVAL_HOURS", "6"))
ALERTS_INTERVAL_HOURS = int(os.getenv("ALERTS_INTERVAL_HOURS", "1"))
