"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (dev, staging, prod)
- Validation at startup (fail fast)
- Type safety with Pydantic
- Alert thresholds are parameters, not literals baked into the rules
"""

import os
from functools import lru_cache
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

# Load environment variables from .env file
load_dotenv()

# Fastest dashboard poll (environment panel). Ticks slower than this look frozen.
FASTEST_CLIENT_POLL_SECONDS = 2.0


class SimulationConfig(BaseModel):
    """Drift and scheduling parameters for the simulated sources."""

    tick_interval_seconds: float = Field(
        default=1.0, gt=0.0, description="Interval between simulation ticks"
    )
    seed: int | None = Field(default=None, description="RNG seed for reproducible runs")

    flow_bucket_count: int = Field(
        default=12, ge=1, le=288, description="Number of equally spaced flow buckets per day"
    )
    flow_noise: int = Field(default=3, ge=0, description="Max +/- noise added to a flow bucket")

    supply_refill_probability: float = Field(
        default=0.02, ge=0.0, le=1.0, description="Per-tick chance a dispenser is restocked"
    )
    supply_refill_amount: float = Field(
        default=60.0, gt=0.0, le=100.0, description="Percent added by a restock"
    )
    occupancy_drift_enabled: bool = Field(
        default=True, description="Let the occupancy simulation move stall statuses"
    )

    @model_validator(mode="after")
    def tick_not_slower_than_clients(self) -> "SimulationConfig":
        if self.tick_interval_seconds > FASTEST_CLIENT_POLL_SECONDS:
            raise ValueError(
                f"tick_interval_seconds must be <= {FASTEST_CLIENT_POLL_SECONDS}s "
                "so polling clients see fresh snapshots"
            )
        return self


class AlertThresholds(BaseModel):
    """Alert trigger levels. Comparisons are exclusive: equal is not an alert."""

    ammonia_ppm: float = Field(default=35.0, ge=0.0)
    h2s_ppm: float = Field(default=10.0, ge=0.0)
    temperature_c: float = Field(default=30.0)
    paper_percent: float = Field(default=20.0, ge=0.0, le=100.0)
    soap_percent: float = Field(default=15.0, ge=0.0, le=100.0)


class StorageConfig(BaseModel):
    """Flat-file record storage for the facility roster."""

    data_dir: str = Field(default="./data", description="Directory holding JSON collections")
    persist: bool = Field(default=True, description="Write roster mutations to disk")


class APIConfig(BaseModel):
    """API server configuration."""

    host: str = Field(default="0.0.0.0", description="API server host")
    port: int = Field(default=3001, gt=0, lt=65536, description="API server port")

    allowed_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"], description="Allowed origins for CORS"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    thresholds: AlertThresholds = Field(default_factory=AlertThresholds)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
        v = val.strip().lower()
        if v in {"dev", "development"}:
            return "development"
        if v in {"stage", "staging"}:
            return "staging"
        return "production"

    def _level_to_literal(val: str) -> Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        v = val.strip().upper()
        return cast(
            Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
        )

    def _parse_bool(val: str | None, default: bool) -> bool:
        if val is None:
            return default
        return val.strip().lower() in {"1", "true", "yes", "on"}

    def _parse_seed(val: str | None) -> int | None:
        if val is None or not val.strip():
            return None
        return int(val)

    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    simulation_config = SimulationConfig(
        tick_interval_seconds=float(os.getenv("TICK_INTERVAL_SECONDS", "1.0")),
        seed=_parse_seed(os.getenv("SIMULATION_SEED")),
        flow_bucket_count=int(os.getenv("FLOW_BUCKET_COUNT", "12")),
        flow_noise=int(os.getenv("FLOW_NOISE", "3")),
        supply_refill_probability=float(os.getenv("SUPPLY_REFILL_PROBABILITY", "0.02")),
        supply_refill_amount=float(os.getenv("SUPPLY_REFILL_AMOUNT", "60.0")),
        occupancy_drift_enabled=_parse_bool(os.getenv("OCCUPANCY_DRIFT_ENABLED"), True),
    )

    thresholds = AlertThresholds(
        ammonia_ppm=float(os.getenv("AMMONIA_ALERT_PPM", "35.0")),
        h2s_ppm=float(os.getenv("H2S_ALERT_PPM", "10.0")),
        temperature_c=float(os.getenv("TEMPERATURE_ALERT_C", "30.0")),
        paper_percent=float(os.getenv("PAPER_LOW_PERCENT", "20.0")),
        soap_percent=float(os.getenv("SOAP_LOW_PERCENT", "15.0")),
    )

    storage_config = StorageConfig(
        data_dir=os.getenv("DATA_DIR", "./data"),
        persist=_parse_bool(os.getenv("PERSIST_ROSTER"), True),
    )

    api_config = APIConfig(
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", "3001")),
        allowed_origins=os.getenv("API_ALLOWED_ORIGINS", "http://localhost:3000").split(","),
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        simulation=simulation_config,
        thresholds=thresholds,
        storage=storage_config,
        api=api_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()


def validate_config() -> None:
    """Validate configuration at startup."""
    try:
        config = get_config()
        print(f"Configuration loaded for {config.environment} environment")
    except Exception as e:
        print(f"Configuration validation failed: {e}")
        raise


def print_config_summary() -> None:
    """Print configuration summary for debugging."""
    config = get_config()

    print("\nCONFIGURATION SUMMARY")
    print(f"Environment: {config.environment}")
    print(f"Debug Mode: {config.debug}")
    print(f"Log Level: {config.logging.level}")

    print("\nSIMULATION")
    print(f"Tick Interval: {config.simulation.tick_interval_seconds}s")
    print(f"Seed: {config.simulation.seed}")
    print(f"Flow Buckets: {config.simulation.flow_bucket_count}")

    print("\nALERT THRESHOLDS")
    print(f"Ammonia: > {config.thresholds.ammonia_ppm} ppm")
    print(f"H2S: > {config.thresholds.h2s_ppm} ppm")
    print(f"Temperature: > {config.thresholds.temperature_c} C")
    print(f"Paper: < {config.thresholds.paper_percent}%")
    print(f"Soap: < {config.thresholds.soap_percent}%")

    print("\nAPI")
    print(f"Host: {config.api.host}:{config.api.port}")
    print(f"Data Dir: {config.storage.data_dir}")


if __name__ == "__main__":
    validate_config()
    print_config_summary()
