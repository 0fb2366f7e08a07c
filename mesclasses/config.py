import os
from pathlib import Path
from typing import List
from urllib.parse import quote_plus

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

DEFAULT_MONGO_URL = "mongodb://localhost:27017"
SPECIAL_PASSWORD_CHARS = ['@', '#', '$', '%', '&', '+', '=']


def encode_mongo_url(mongo_url: str) -> str:
    """Percent-encode the password part of a Mongo URL when it holds special characters."""
    if '@' not in mongo_url or '://' not in mongo_url:
        return mongo_url
    protocol_end = mongo_url.find('://') + 3
    # the password itself may contain '@', so split on the last one
    at_pos = mongo_url.rfind('@')
    if at_pos <= protocol_end:
        return mongo_url
    user_pass = mongo_url[protocol_end:at_pos]
    if ':' not in user_pass:
        return mongo_url
    username, password = user_pass.split(':', 1)
    if not any(c in password for c in SPECIAL_PASSWORD_CHARS):
        return mongo_url
    return mongo_url[:protocol_end] + f"{username}:{quote_plus(password)}" + mongo_url[at_pos:]


def mongo_url() -> str:
    return encode_mongo_url(os.environ.get('MONGO_URL') or DEFAULT_MONGO_URL)


def db_name() -> str:
    return os.environ.get('DB_NAME', 'mesclasses')


def cors_origins() -> List[str]:
    raw = os.environ.get("CORS_ORIGINS", "*").strip()
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    return origins or ["*"]


def log_level() -> str:
    return os.environ.get("LOG_LEVEL", "INFO").upper()


def server_host() -> str:
    return os.environ.get("HOST", "127.0.0.1")


def server_port() -> int:
    return int(os.environ.get("PORT", "8000"))
