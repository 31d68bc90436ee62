import os

# Read after load_dotenv() has run in main.py
TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

# Upper bound on a single challenge generation call
GENERATION_TIMEOUT_SECONDS = float(os.getenv("GENERATION_TIMEOUT_SECONDS", "30"))

# Small delay between scheduled messages
SEND_DELAY_SECONDS = float(os.getenv("SEND_DELAY_SECONDS", "0.5"))

API_HOST = os.getenv("API_HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "4111"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
