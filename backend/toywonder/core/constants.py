"""
Application-wide constants.
Centralizes the catalog vocabulary and the limits used by the broker.
"""
from typing import Dict, List


class CatalogConstants:
    """Constants related to the toy catalog."""

    CATEGORIES: List[str] = [
        "Educational",
        "Outdoor Fun",
        "Plushies",
        "Arts & Crafts",
        "Robots",
        "Gifts",
    ]

    # Returned when neither the provider nor the keyword table yields a ranking
    DEFAULT_SEARCH_CATEGORIES: List[str] = ["Educational", "Plushies", "Outdoor Fun"]

    @classmethod
    def canonical_category(cls, name: str) -> str | None:
        """Map a loosely formatted category name onto the vocabulary."""
        cleaned = name.strip().strip("\"'`.*").strip().lower()
        for category in cls.CATEGORIES:
            if category.lower() == cleaned:
                return category
        return None


class ImageConstants:
    """Constants for image generation and editing."""

    SIZES: List[str] = ["1024x1024", "2048x2048", "4096x4096"]
    DEFAULT_SIZE: str = "1024x1024"

    # Imagen only knows two resolutions
    IMAGEN_SAMPLE_SIZES: Dict[str, str] = {
        "1024x1024": "1K",
        "2048x2048": "2K",
        "4096x4096": "2K",
    }

    # Any image subtype is accepted for editing
    ACCEPTED_MIME_PREFIX: str = "image/"

    MAX_EDIT_IMAGE_BYTES: int = 10 * 1024 * 1024


class LimitsConstants:
    """Limits and thresholds used throughout the application."""

    # Conversation history forwarded to remote prompts
    HISTORY_TURN_LIMIT: int = 20

    # Product picks in heuristic replies
    TOP_PRODUCTS_COUNT: int = 3

    # Search recommendations
    MAX_SEARCH_CATEGORIES: int = 4

    # Browsing-history recommendations
    MAX_HISTORY_CATEGORIES: int = 2
    MAX_HISTORY_RECOMMENDATIONS: int = 4

    # HTTP and network
    PROVIDER_TIMEOUT_SECONDS: float = 120.0
    KEYLESS_IMAGE_TIMEOUT_SECONDS: float = 60.0


__all__ = [
    'CatalogConstants',
    'ImageConstants',
    'LimitsConstants'
]
