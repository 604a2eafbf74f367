import os

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
ROOT_DIR = os.path.dirname(os.path.dirname(BASE_DIR))

ENVIRONMENT = os.getenv("HOMELEAD_ENV", "development").lower()
IS_PRODUCTION = ENVIRONMENT == "production"

# Storage
DATA_DIR = os.getenv("HOMELEAD_DATA_DIR", os.path.join(ROOT_DIR, "data"))

# Admin shared secret (seed only; the live value is owned by the settings store)
ADMIN_PASS = os.getenv("HOMELEAD_ADMIN_PASS") or ("" if IS_PRODUCTION else "homelead-dev")

# AI provider (OpenAI-compatible chat completions)
DEEPSEEK_API_KEY = os.getenv("DEEPSEEK_API_KEY", "")
DEEPSEEK_URL = os.getenv("DEEPSEEK_URL", "https://api.deepseek.com/chat/completions")
DEEPSEEK_MODEL = os.getenv("DEEPSEEK_MODEL", "deepseek-chat")
LLM_TIMEOUT = float(os.getenv("HOMELEAD_LLM_TIMEOUT", "25"))  # seconds, wall clock

# Mail
SENDGRID_API_KEY = os.getenv("SENDGRID_API_KEY", "")
MAIL_FROM_EMAIL = os.getenv("MAIL_FROM_EMAIL", "noreply@homelead.example")
MAIL_FROM_NAME = os.getenv("MAIL_FROM_NAME", "HomeLead | Home Purchase Agent")
NOTIFY_EMAIL = os.getenv("NOTIFY_EMAIL", "agent@homelead.example")

# Links embedded in emails and prompts
APP_URL = os.getenv("APP_URL", f"http://localhost:{os.getenv('PORT', '8000')}")
BOOKING_URL = os.getenv("BOOKING_URL", "https://booking.homelead.example/agent")
BLOG_BASE_URL = os.getenv("BLOG_BASE_URL", "https://blog.homelead.example")

LOG_LEVEL = os.getenv("HOMELEAD_LOG_LEVEL", "INFO").upper()

CORS_ORIGINS = [
    o.strip()
    for o in os.getenv(
        "HOMELEAD_CORS_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000,http://localhost:8000",
    ).split(",")
    if o.strip()
]


def check_startup(is_production: bool, admin_pass: str, llm_api_key: str) -> None:
    """Refuse to boot a production instance that is missing its secrets."""
    if not is_production:
        return
    missing = []
    if not admin_pass:
        missing.append("HOMELEAD_ADMIN_PASS")
    if not llm_api_key:
        missing.append("DEEPSEEK_API_KEY")
    if missing:
        raise RuntimeError(f"Production posture requires: {', '.join(missing)}")
