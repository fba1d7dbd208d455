import os

from dotenv import load_dotenv

load_dotenv()

GIGACHARGER_API_HOST = os.getenv("GIGACHARGER_API_HOST", "https://core.gigacharger.net/v1")
GIGACHARGER_WS_URL = os.getenv("GIGACHARGER_WS_URL", "wss://ws.gigacharger.net:41414")

# Credentials (optional once a session token is cached)
GIGACHARGER_EMAIL = os.getenv("GIGACHARGER_EMAIL")
GIGACHARGER_PASSWORD = os.getenv("GIGACHARGER_PASSWORD")
MY_CHARGER_ID = os.getenv("GIGACHARGER_MY_CHARGER_ID")

GIGACHARGER_TIMEOUT_SEC = float(os.getenv("GIGACHARGER_TIMEOUT_SEC", "40"))
# failure kinds that trigger one re-login with a fresh token
GIGACHARGER_REAUTH_ON = frozenset(
    k.strip() for k in os.getenv("GIGACHARGER_REAUTH_ON", "connection,abnormal_closure").split(",") if k.strip()
)

# The vendor's Android app, so the API treats us as one of its clients
USER_AGENT = os.getenv(
    "GIGACHARGER_USER_AGENT",
    "Mozilla/5.0 (Linux; Android 11; sdk_gphone_arm64 Build/RSR1.210722.013.A4; wv) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Version/4.0 Chrome/91.0.4472.114 Mobile Safari/537.36",
)

TESSIE_API_URL = os.getenv("TESSIE_API_URL", "https://api.tessie.com")
TESSIE_TOKEN = os.getenv("TESSIE_TOKEN")
TESSIE_VIN = os.getenv("TESSIE_VIN")

VEHICLE_HOME_LATITUDE = os.getenv("VEHICLE_HOME_LATITUDE")
VEHICLE_HOME_LONGITUDE = os.getenv("VEHICLE_HOME_LONGITUDE")
VEHICLE_HOME_RADIUS_M = float(os.getenv("VEHICLE_HOME_RADIUS_M", "100"))

CHARGING_CRON = os.getenv("CHARGING_CRON")  # e.g. "30 1 * * *"

API_PASSWORD = os.getenv("API_PASSWORD")
HTTP_HOST = os.getenv("HTTP_HOST", "0.0.0.0")
HTTP_PORT = int(os.getenv("HTTP_PORT", "3000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
