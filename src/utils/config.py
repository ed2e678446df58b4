"""Configuration management for the Recipe Synthesis Service.

Loads environment variables from system environment and .env file.
Priority order: system environment > .env file > hardcoded defaults
"""

import os
from typing import Optional

from dotenv import load_dotenv


# Load .env file (if exists, silently continues if missing)
load_dotenv()


def _as_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self) -> None:
        """Initialize configuration from environment variables."""
        # Credential Pool: primary, secondary, then any comma-separated extras (in that order)
        self.GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
        self.GEMINI_API_KEY_SECONDARY: str = os.getenv("GEMINI_API_KEY_SECONDARY", "")
        self.GEMINI_API_KEYS: str = os.getenv("GEMINI_API_KEYS", "")
        # Recipe Model: structured recipe generation
        # Default: gemini-3-pro-preview (best reasoning for full recipes)
        self.RECIPE_MODEL: str = os.getenv("RECIPE_MODEL", "gemini-3-pro-preview")
        # Vision Model: ingredient recognition from a single still image
        self.VISION_MODEL: str = os.getenv("VISION_MODEL", "gemini-3-flash-preview")
        # Image Model: food photography synthesis
        self.IMAGE_MODEL: str = os.getenv("IMAGE_MODEL", "gemini-2.5-flash-image")
        # Filter Model: free-text request -> structured preferences
        self.FILTER_MODEL: str = os.getenv("FILTER_MODEL", "gemini-3-flash-preview")
        # Aspect ratio requested for synthesized images
        self.IMAGE_ASPECT_RATIO: str = os.getenv("IMAGE_ASPECT_RATIO", "16:9")
        # Thinking Budget: tokens the recipe model may spend reasoning. 0 disables thinking
        self.THINKING_BUDGET: int = int(os.getenv("THINKING_BUDGET", "16000"))
        # Temperature: unset leaves the model default in place
        temperature = os.getenv("TEMPERATURE")
        self.TEMPERATURE: Optional[float] = float(temperature) if temperature else None
        # Maximum image size (in MB) accepted for ingredient recognition. Default: 5 MB
        self.MAX_IMAGE_SIZE_MB: int = int(os.getenv("MAX_IMAGE_SIZE_MB", "5"))
        # Core Ingredient Screen: reject requests without a main protein/vegetable/grain
        # unless at least three ingredients are supplied
        self.REQUIRE_CORE_INGREDIENT: bool = _as_bool(os.getenv("REQUIRE_CORE_INGREDIENT", "false"))
        # Placeholder shown when image synthesis fails. Empty: leave the image unset
        self.PLACEHOLDER_IMAGE_URL: str = os.getenv("PLACEHOLDER_IMAGE_URL", "")
        # Server Port
        self.PORT: int = int(os.getenv("PORT", "8000"))

    @property
    def api_keys(self) -> list[str]:
        """Ordered, de-duplicated credential list (blank entries dropped)."""
        candidates = [self.GEMINI_API_KEY, self.GEMINI_API_KEY_SECONDARY]
        candidates.extend(self.GEMINI_API_KEYS.split(","))
        keys = [key.strip() for key in candidates if key and key.strip()]
        return list(dict.fromkeys(keys))

    def validate(self) -> None:
        """Validate configuration values.

        An empty credential pool is deliberately accepted here: it is reported
        through the ``unconfigured`` health state instead of failing at import.

        Raises:
            ValueError: If a setting holds an out-of-range value.
        """
        if self.IMAGE_ASPECT_RATIO not in ("1:1", "3:4", "4:3", "9:16", "16:9"):
            raise ValueError(
                f"IMAGE_ASPECT_RATIO must be one of 1:1, 3:4, 4:3, 9:16, 16:9, got: {self.IMAGE_ASPECT_RATIO}"
            )
        if self.THINKING_BUDGET < 0:
            raise ValueError(
                f"THINKING_BUDGET must be 0 or greater, got: {self.THINKING_BUDGET}"
            )
        if self.TEMPERATURE is not None and not (0.0 <= self.TEMPERATURE <= 2.0):
            raise ValueError(
                f"TEMPERATURE must be between 0.0 and 2.0, got: {self.TEMPERATURE}"
            )
        if self.MAX_IMAGE_SIZE_MB < 1:
            raise ValueError(
                f"MAX_IMAGE_SIZE_MB must be at least 1, got: {self.MAX_IMAGE_SIZE_MB}"
            )
        if not (1 <= self.PORT <= 65535):
            raise ValueError(
                f"PORT must be between 1 and 65535, got: {self.PORT}"
            )


# Create module-level config instance and validate immediately
config = Config()
config.validate()
