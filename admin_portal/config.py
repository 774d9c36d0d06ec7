import os

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Content API (Strapi). One configured base URL for every call.
CMS_API_URL = os.getenv("CMS_API_URL", "http://localhost:1337").rstrip("/")
CMS_TIMEOUT = float(os.getenv("CMS_TIMEOUT", "30"))

# Role ids used by the content API
DOCTOR_ROLE_ID = int(os.getenv("DOCTOR_ROLE_ID", "3"))
CHEW_ROLE_ID = int(os.getenv("CHEW_ROLE_ID", "4"))
PATIENT_ROLE_ID = int(os.getenv("PATIENT_ROLE_ID", "5"))
ADMIN_ROLE_ID = int(os.getenv("ADMIN_ROLE_ID", "6"))

# Paystack (payouts)
PAYSTACK_SECRET_KEY = os.getenv("PAYSTACK_SECRET_KEY", "")
PAYSTACK_BASE_URL = os.getenv("PAYSTACK_BASE_URL", "https://api.paystack.co").rstrip("/")
PAYSTACK_TIMEOUT = float(os.getenv("PAYSTACK_TIMEOUT", "30"))
PAYOUT_CURRENCY = os.getenv("PAYOUT_CURRENCY", "NGN")
MOBILE_MONEY_PROVIDER = os.getenv("MOBILE_MONEY_PROVIDER", "mtn")
MOBILE_MONEY_EMAIL = os.getenv("MOBILE_MONEY_EMAIL", "noreply@marketdoctors.com")

# OneSignal (push notifications)
ONESIGNAL_APP_ID = os.getenv("ONESIGNAL_APP_ID", "")
ONESIGNAL_REST_API_KEY = os.getenv("ONESIGNAL_REST_API_KEY", "")
ONESIGNAL_URL = os.getenv("ONESIGNAL_URL", "https://onesignal.com/api/v1/notifications")
ONESIGNAL_TIMEOUT = float(os.getenv("ONESIGNAL_TIMEOUT", "30"))

# Admin sessions
SESSION_TTL_HOURS = int(os.getenv("SESSION_TTL_HOURS", "24"))

# How often a request checks whether its client has gone away
DISCONNECT_POLL_SECONDS = float(os.getenv("DISCONNECT_POLL_SECONDS", "0.1"))

# Placeholder assets so the dashboard never renders a broken image
PLACEHOLDER_AVATAR = os.getenv("PLACEHOLDER_AVATAR", "/images/brand/person_avatar.svg")
PLACEHOLDER_IMAGE = os.getenv("PLACEHOLDER_IMAGE", "/images/brand/placeholder.png")

DATABASE_PATH = os.getenv("DATABASE_PATH", "admin_portal.db")
