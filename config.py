"""
Configuration management for Business Card Processing API.

Handles environment variables, API keys, and extraction settings.
"""

import os
import logging
from typing import List, Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() == "true"


class Config:
    """Application configuration class.

    Attributes:
        DEBUG: Enable debug mode
        TESTING: Enable testing mode
        SECRET_KEY: Flask secret key
        MAX_CONTENT_LENGTH: Maximum upload file size (16MB default)
        ALLOWED_EXTENSIONS: Allowed image file extensions
        OCR_LANGUAGES: EasyOCR language codes
        GOOGLE_API_KEY: Gemini API key; enhancement is unavailable without it
        AI_ENHANCEMENT: Run Gemini after the local parse by default
        AI_TIMEOUT: Seconds to wait for Gemini before using the local parse
    """

    # Flask Settings
    DEBUG: bool = _env_bool("CARD_API_DEBUG")
    TESTING: bool = _env_bool("CARD_API_TESTING")
    SECRET_KEY: str = os.getenv("CARD_API_SECRET_KEY", "dev-secret-key-change-in-production")

    # File Upload Settings
    MAX_CONTENT_LENGTH: int = 16 * 1024 * 1024  # 16MB max file size
    ALLOWED_EXTENSIONS: set = {"png", "jpg", "jpeg", "gif", "bmp", "webp"}

    # OCR Settings
    OCR_LANGUAGES: List[str] = [
        lang.strip() for lang in os.getenv("CARD_API_OCR_LANGUAGES", "ch_tra,en").split(",") if lang.strip()
    ]
    OCR_GPU: bool = _env_bool("CARD_API_OCR_GPU")
    OCR_MODEL_DIR: str = os.getenv("CARD_API_OCR_MODEL_DIR", "./models")
    OCR_MAX_DIMENSION: int = int(os.getenv("CARD_API_OCR_MAX_DIMENSION", "1600"))
    OCR_MIN_CONFIDENCE: float = float(os.getenv("CARD_API_OCR_MIN_CONFIDENCE", "0.15"))
    OCR_ENHANCE_IMAGES: bool = _env_bool("CARD_API_OCR_ENHANCE_IMAGES")

    # AI Extraction (Gemini)
    GOOGLE_API_KEY: Optional[str] = os.getenv("GOOGLE_API_KEY") or os.getenv("GEMINI_API_KEY")
    GEMINI_MODEL: str = os.getenv("CARD_API_GEMINI_MODEL", "gemini-2.5-flash")
    AI_ENHANCEMENT: bool = _env_bool("CARD_API_AI_ENHANCEMENT", "True")
    AI_TIMEOUT: float = float(os.getenv("CARD_API_AI_TIMEOUT", "20"))
    AI_SEND_IMAGE: bool = _env_bool("CARD_API_AI_SEND_IMAGE")
    AI_LANGUAGE: str = os.getenv("CARD_API_AI_LANGUAGE", "zh-TW")

    # Logging
    LOG_LEVEL: str = os.getenv("CARD_API_LOG_LEVEL", "INFO")
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @classmethod
    def init_app(cls, app) -> None:
        """Initialize Flask app with configuration.

        Args:
            app: Flask application instance
        """
        app.config.from_object(cls)

        # Configure logging
        logging.basicConfig(
            level=getattr(logging, cls.LOG_LEVEL.upper()),
            format=cls.LOG_FORMAT
        )

        logger.info("Configuration initialized successfully")

    @classmethod
    def is_allowed_file(cls, filename: str) -> bool:
        """Check if file extension is allowed.

        Args:
            filename: Name of the file to check

        Returns:
            True if file extension is allowed, False otherwise
        """
        return "." in filename and \
            filename.rsplit(".", 1)[1].lower() in cls.ALLOWED_EXTENSIONS

    @classmethod
    def get_api_status(cls) -> dict:
        """Get status of configured API keys.

        Returns:
            Dictionary with API availability status
        """
        return {
            "gemini_api": cls.GOOGLE_API_KEY is not None,
            "ai_enhancement": cls.AI_ENHANCEMENT,
        }


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    LOG_LEVEL = "DEBUG"


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    LOG_LEVEL = "INFO"


class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    DEBUG = True
    LOG_LEVEL = "DEBUG"
    # Never call Gemini from the test suite
    GOOGLE_API_KEY = None
    AI_ENHANCEMENT = False


# Configuration mapping
config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig
}


def get_config(config_name: Optional[str] = None) -> Config:
    """Get configuration class by name.

    Args:
        config_name: Configuration name (development, production, testing)

    Returns:
        Configuration class
    """
    if config_name is None:
        config_name = os.getenv("CARD_API_ENV", "development")
    return config_by_name.get(config_name, DevelopmentConfig)
