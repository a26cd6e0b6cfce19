"""Runtime settings, read from the environment (and a local .env file)."""
from __future__ import annotations
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

API_BASE_URL = os.getenv("DOCTORA_API_BASE_URL", "http://localhost:8082").rstrip("/")
HTTP_TIMEOUT = float(os.getenv("DOCTORA_HTTP_TIMEOUT", "15"))

STORAGE_DIR = Path(os.getenv("DOCTORA_STORAGE_DIR", ".doctora"))
RECEIPT_DIR = Path(os.getenv("DOCTORA_RECEIPT_DIR", "receipts"))

LOG_LEVEL = os.getenv("DOCTORA_LOG_LEVEL", "INFO")

# seconds
FINISH_REDIRECT_DELAY = float(os.getenv("DOCTORA_FINISH_REDIRECT_DELAY", "5"))
CAROUSEL_INTERVAL = float(os.getenv("DOCTORA_CAROUSEL_INTERVAL", "3"))


def offline_mode() -> bool:
    """Serve demo data and local queue numbers instead of calling the backend."""
    return os.getenv("OFFLINE_MODE", "0") == "1"
