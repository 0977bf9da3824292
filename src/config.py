"""
Configuration module for the WanderLink Match Service.

Loads environment variables and provides configuration singletons.
Uses pydantic for validation.
"""

from pydantic_settings import BaseSettings
from typing import Optional
import os


class Config(BaseSettings):
    """
    Application configuration loaded from environment variables.

    All values come from .env file or system environment.
    Type hints provide validation (pydantic converts types automatically).
    """

    # ============================================================
    # FIREBASE CONFIGURATION (REQUIRED)
    # ============================================================
    FIREBASE_PROJECT_ID: str
    """Firebase project ID. Find in Firebase Console → Project Settings."""

    GOOGLE_APPLICATION_CREDENTIALS: str = "/config/serviceAccountKey.json"
    """Path to Firebase service account JSON file."""

    # ============================================================
    # LANGSMITH CONFIGURATION (OPTIONAL - FOR DEBUGGING)
    # ============================================================
    LANGSMITH_API_KEY: Optional[str] = None
    """LangSmith API key for tracing graphs. Leave empty if not using."""

    LANGSMITH_ENABLED: bool = False
    """Enable LangSmith tracing. Set to True only if LANGSMITH_API_KEY is set."""

    # ============================================================
    # GRAPH CONFIGURATION
    # ============================================================
    GRAPH_TIMEOUT: int = 30
    """Maximum seconds a graph can run before timeout. Default: 30 seconds."""

    # ============================================================
    # CANDIDATE DISCOVERY
    # ============================================================
    PROFILES_PER_FETCH: int = 10
    """Candidates returned per page to the swipe deck. Default: 10."""

    RADIUS_OVERFETCH_MULTIPLIER: int = 3
    """Raw page is PROFILES_PER_FETCH x this when a radius filter is requested."""

    FALLBACK_OVERFETCH_MULTIPLIER: int = 2
    """Raw page multiplier when the exclusion set is too large for 'not-in'."""

    NOT_IN_FILTER_LIMIT: int = 10
    """Largest exclusion list sent to Firestore as a 'not-in' predicate."""

    MAX_RADIUS_KM: float = 20037.5
    """Largest accepted search radius (half the Earth's circumference)."""

    # ============================================================
    # SECURITY CONFIGURATION
    # ============================================================
    SERVICE_TOKEN: str = os.getenv("SERVICE_TOKEN", "")
    """Shared secret for authenticating requests from the web app's server actions."""

    # ============================================================
    # SERVER CONFIGURATION
    # ============================================================
    PORT: int = 8000
    """Port to run FastAPI server on. Default: 8000."""

    HOST: str = "0.0.0.0"
    """Host to bind to. 0.0.0.0 = accessible from network."""

    DEBUG: bool = False
    """Enable debug logging. Set True for development, False for production."""

    class Config:
        """Pydantic configuration."""
        env_file = ".env"  # Read from .env file
        case_sensitive = True  # Variable names are case-sensitive
        extra = "ignore"  # Ignore extra env vars not defined above


# ============================================================
# SINGLETON INSTANCE
# ============================================================
# Load config once at startup, reuse throughout app
config = Config()


# ============================================================
# VALIDATION AT STARTUP
# ============================================================
def validate_config() -> dict:
    """
    Validate that required config values are set.

    Called at app startup to fail fast if config is incomplete.

    Returns:
        dict: Status of each required field

    Raises:
        ValueError: If required config is missing
    """
    errors = []

    # Firebase is always required
    if not config.FIREBASE_PROJECT_ID:
        errors.append("FIREBASE_PROJECT_ID is required")

    if config.PROFILES_PER_FETCH < 1:
        errors.append("PROFILES_PER_FETCH must be at least 1")

    if config.RADIUS_OVERFETCH_MULTIPLIER < 1 or config.FALLBACK_OVERFETCH_MULTIPLIER < 1:
        errors.append("Over-fetch multipliers must be at least 1")

    # If LangSmith enabled, must have API key
    if config.LANGSMITH_ENABLED and not config.LANGSMITH_API_KEY:
        errors.append("LANGSMITH_ENABLED=True but LANGSMITH_API_KEY not set")

    if errors:
        raise ValueError(f"Configuration errors:\n" + "\n".join([f"  - {e}" for e in errors]))

    return {
        "firebase": "✓ Configured" if config.FIREBASE_PROJECT_ID else "✗ Missing",
        "page_size": str(config.PROFILES_PER_FETCH),
        "langsmith": "✓ Configured" if config.LANGSMITH_ENABLED else "✗ Disabled",
        "service_token": "✓ Configured" if config.SERVICE_TOKEN else "✗ Not set",
    }


if __name__ == "__main__":
    """Allow testing config by running: python -m src.config"""
    try:
        status = validate_config()
        print("✅ Configuration is valid!")
        print("\nConfiguration Status:")
        for key, value in status.items():
            print(f"  {key}: {value}")
    except ValueError as e:
        print(f"❌ Configuration error:\n{e}")
        exit(1)
