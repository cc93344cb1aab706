"""Application configuration using environment variables."""
import os
from functools import lru_cache
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self):
        # Database
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./pethunt.db")

        # Server
        self.HOST: str = os.getenv("HOST", "127.0.0.1")
        self.PORT: int = int(os.getenv("PORT", "8000"))
        self.DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

        # Static game data (species, regions, evolutions); packaged data if unset
        self.GAME_CONFIG_DIR: str = os.getenv("GAME_CONFIG_DIR", "")

        # Hunt tuning
        self.HUNT_MOVE_BUDGET: int = int(os.getenv("HUNT_MOVE_BUDGET", "10"))
        self.ENCOUNTER_CHANCE: float = float(os.getenv("ENCOUNTER_CHANCE", "0.5"))
        self.MAX_PETS_PER_OWNER: int = int(os.getenv("MAX_PETS_PER_OWNER", "100"))

        # New account grants
        self.STARTING_HUNT_TICKETS: int = int(os.getenv("STARTING_HUNT_TICKETS", "5"))
        self.STARTING_BASIC_TOOLS: int = int(os.getenv("STARTING_BASIC_TOOLS", "5"))


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
