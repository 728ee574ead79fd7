import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./barberbook.db")

# Business clock - all booking dates and times are wall-clock values in this zone
BUSINESS_TIMEZONE = os.getenv("BUSINESS_TIMEZONE", "Asia/Tashkent")

# Working hours used when a barber has none configured
DEFAULT_WORK_START = os.getenv("DEFAULT_WORK_START", "09:00")
DEFAULT_WORK_END = os.getenv("DEFAULT_WORK_END", "18:00")

# Slot presentation: hourly grid, same-day slots need this much lead time
SLOT_STEP_MINUTES = int(os.getenv("SLOT_STEP_MINUTES", "60"))
BOOKING_LEAD_MINUTES = int(os.getenv("BOOKING_LEAD_MINUTES", "30"))

# Notification scheduler
SCHEDULER_INTERVAL_SECONDS = int(os.getenv("SCHEDULER_INTERVAL_SECONDS", "60"))
NOTIFY_TIMEOUT_SECONDS = float(os.getenv("NOTIFY_TIMEOUT_SECONDS", "10"))

# Telegram Bot API (outbound notifications)
TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN")
TELEGRAM_API_BASE = os.getenv("TELEGRAM_API_BASE", "https://api.telegram.org")

# Clients without a messaging contact are removed after this many hours
UNREGISTERED_CLIENT_TTL_HOURS = int(os.getenv("UNREGISTERED_CLIENT_TTL_HOURS", "24"))

# PostgreSQL pool (ignored for SQLite) and slow query warnings
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "5"))
DB_POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "300"))
DB_SLOW_QUERY_SECONDS = float(os.getenv("DB_SLOW_QUERY_SECONDS", "0"))

# arq worker queue
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379")
