# server/core/config.py
"""
Configuration management for the irrigation advisor backend
"""

from pydantic_settings import BaseSettings
from typing import List, Optional, Dict, Any
from functools import lru_cache
from enum import Enum
import logging
from dotenv import load_dotenv
load_dotenv()

logger = logging.getLogger(__name__)

class Environment(str, Enum):
    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"

class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"

class Settings(BaseSettings):
    """Application settings with validation"""

    # Environment
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = True

    # API Configuration
    api_title: str = "AgriSphere Irrigation Advisor"
    api_version: str = "1.0.0"
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Logging
    log_level: LogLevel = LogLevel.INFO
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # CORS
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:4173"
    ]
    cors_allow_credentials: bool = True
    cors_allow_methods: List[str] = ["*"]
    cors_allow_headers: List[str] = ["*"]

    # OpenEPI upstream
    openepi_base_url: str = "https://api.openepi.io"
    openepi_auth_url: str = "https://auth.openepi.io/realms/openepi/protocol/openid-connect/token"
    openepi_client_id: Optional[str] = None
    openepi_client_secret: Optional[str] = None
    openepi_api_key: Optional[str] = None
    request_timeout_seconds: float = 20.0
    token_safety_margin_seconds: int = 600  # refresh 10 minutes before expiry

    # Retries
    retry_attempts: int = 3
    retry_base_delay_seconds: float = 2.0

    # Cache Configuration
    cache_enabled: bool = True
    cache_max_size: int = 1000
    cache_sweep_interval_seconds: int = 300  # 5 minutes
    cache_ttl_current_weather: int = 1800  # 30 minutes
    cache_ttl_forecast: int = 3600  # 1 hour
    cache_ttl_historical: int = 86400  # 24 hours
    cache_ttl_soil: int = 86400

    # Rate Limiting
    rate_limit_enabled: bool = True
    rate_limit_requests: int = 60
    rate_limit_window: int = 60  # seconds

    # Agent Configurations
    irrigation_config: Dict[str, Any] = {
        "default_days_since_irrigation": 7,
        "moisture_baseline_fraction": 0.8,
        "default_root_depth_m": 0.6,
        "forecast_days": 7,
        "rain_lookahead_days": 3,
        "water_cost_per_liter": 0.001,
        "energy_cost_per_liter": 0.0005,
        "co2_kg_per_liter": 0.0003,
        "currency": "USD"
    }

    def get_agent_config(self, agent_name: str) -> Dict[str, Any]:
        """Get configuration for specific agent"""
        config_map = {
            "irrigation": self.irrigation_config
        }
        return config_map.get(agent_name, {})

    @property
    def is_development(self) -> bool:
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @property
    def has_client_credentials(self) -> bool:
        return bool(self.openepi_client_id and self.openepi_client_secret)

    class Config:
        env_file = ".env"
        case_sensitive = False

@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()

# Validation functions
def validate_api_keys(settings: Settings) -> None:
    """Validate upstream credentials based on environment"""
    if settings.has_client_credentials or settings.openepi_api_key:
        logger.info("OpenEPI credentials are present")
        return

    missing = "OPENEPI_CLIENT_ID/OPENEPI_CLIENT_SECRET or OPENEPI_API_KEY"
    if settings.is_production:
        raise ValueError(f"Missing required API credentials in production: {missing}")

    logger.warning(f"Missing API credentials ({settings.environment.value} mode): {missing}")
    logger.warning("Requests without credentials may be rejected; synthetic data will be used instead")
