# datalayer/config.py

from typing import Optional
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Loads data layer settings from .env file."""
    mongo_uri: Optional[str] = None
    mongo_user: Optional[str] = None
    mongo_password: Optional[str] = None
    mongo_host: str = "localhost"
    mongo_port: int = 27017
    db_name: str = "farm_dashboard_db"

    # Weather updater (Open-Meteo)
    weather_latitude: float = 41.59
    weather_longitude: float = -93.62
    weather_location: str = "Farm Location"
    forecast_days: int = 5

    # REST API server
    api_host: str = "0.0.0.0"
    api_port: int = 8001

    @property
    def final_mongo_uri(self) -> str:
        """Constructs safe MongoDB URI from components (preferred) or returns the provided one."""
        if self.mongo_user and self.mongo_password:
            import urllib.parse
            user = urllib.parse.quote_plus(self.mongo_user)
            password = urllib.parse.quote_plus(self.mongo_password)
            return f"mongodb+srv://{user}:{password}@{self.mongo_host}/"

        if self.mongo_uri:
            return self.mongo_uri

        return f"mongodb://{self.mongo_host}:{self.mongo_port}/"

    class Config:
        env_file = ".env"

# Create a single, reusable instance of the settings
settings = Settings()
