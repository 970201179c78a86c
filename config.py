from dotenv import load_dotenv
import os

# Load variables from .env file
load_dotenv()

# Access the keys from the environment
GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.0-flash-lite")

# Stripe checkout
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
APP_URL = os.getenv("APP_URL", "http://localhost:5173")

# AI request throttling (requests per window, window in seconds)
AI_RATE_LIMIT = int(os.getenv("AI_RATE_LIMIT", "50"))
AI_RATE_WINDOW = int(os.getenv("AI_RATE_WINDOW", "60"))

# Database configuration
DB_CONFIG = {
    "host":     os.getenv("DB_HOST", "localhost"),
    "user":     os.getenv("DB_USER", "root"),
    "password": os.getenv("DB_PASSWORD", ""),
    "database": os.getenv("DB_NAME", "goaltracker"),
    "port":     int(os.getenv("DB_PORT", "3306")),
    "connection_timeout": 5,
}
# Connections per pool (mysql-connector allows at most 32)
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "16"))

# Gemini LLM setup, built on first use so the service starts without a key
_llm = None


def get_llm():
    global _llm
    if _llm is None:
        from goaltracker.errors import AIConfigurationError
        if not GOOGLE_API_KEY:
            raise AIConfigurationError()
        from langchain_google_genai import ChatGoogleGenerativeAI
        _llm = ChatGoogleGenerativeAI(
            model=GEMINI_MODEL,
            google_api_key=GOOGLE_API_KEY,
            temperature=0.1
        )
    return _llm
