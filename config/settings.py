import os
from pathlib import Path
from dotenv import load_dotenv

# Load env vars from config/.env
BASE_DIR = Path(__file__).resolve().parent
load_dotenv(BASE_DIR / ".env")

class Settings:
    GEMINI_API_URL: str = os.getenv(
        "GEMINI_API_URL", "https://generativelanguage.googleapis.com/v1beta"
    )
    GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-3-pro-image-preview")

    GEMINI_API_KEY: str | None = os.getenv("GEMINI_API_KEY")

    IMAGE_MAX_DIMENSION: int = 1536
    JPEG_QUALITY: int = 90

    ASPECT_RATIO: str = "4:3"
    IMAGE_SIZE: str = "1K"

    VARIANTS_PER_STYLE: int = 2

    REQUEST_TIMEOUT: float = float(os.getenv("REQUEST_TIMEOUT", "300"))  # seconds

settings = Settings()
