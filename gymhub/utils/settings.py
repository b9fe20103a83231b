# gymhub/utils/settings.py
import os
from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

HUB_URL = os.getenv("HUB_URL", "https://localhost:7003/notificationHub")
HUB_MAX_RECONNECT_ATTEMPTS = int(os.getenv("HUB_MAX_RECONNECT_ATTEMPTS", 5))
HUB_INITIAL_RETRY_DELAY = float(os.getenv("HUB_INITIAL_RETRY_DELAY", 1.0))
HUB_MAX_RETRY_DELAY = float(os.getenv("HUB_MAX_RETRY_DELAY", 30.0))
HUB_NEGOTIATE_TIMEOUT = int(os.getenv("HUB_NEGOTIATE_TIMEOUT", 5))

NOTIFICATION_CAPACITY = int(os.getenv("NOTIFICATION_CAPACITY", 50))
RECENT_NOTIFICATION_IDS = int(os.getenv("RECENT_NOTIFICATION_IDS", 200))

REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
CART_TTL_SECONDS = int(os.getenv("CART_TTL_SECONDS", 15*60))
CART_SESSION_ID = os.getenv("CART_SESSION_ID", "default")
