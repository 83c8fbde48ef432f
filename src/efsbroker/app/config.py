"""Application configuration using pydantic-settings."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BrokerConfig(BaseSettings):
    """Service catalog identity and binding defaults."""

    model_config = SettingsConfigDict(env_prefix="BROKER_")

    service_name: str = Field(default="efsvolume")
    service_id: str = Field(default="efs-service-guid")
    plan_name: str = Field(default="generalPurpose")
    plan_id: str = Field(default="generalPurpose")
    plan_desc: str = Field(default="recommended for most file systems")
    data_dir: str = Field(default="/var/vcap/store/efsbroker")

    # Binding defaults
    container_dir: str = Field(default="/var/vcap/data")
    volume_driver: str = Field(default="efsdriver")


class AwsConfig(BaseSettings):
    """AWS EFS API configuration.

    Only the first subnet is used for mount targets.
    """

    model_config = SettingsConfigDict(env_prefix="AWS_")

    region: str = Field(default="us-east-1")
    # Set for local emulators (e.g. moto server, localstack)
    endpoint_url: str | None = Field(default=None)
    access_key_id: str | None = Field(default=None)
    secret_access_key: str | None = Field(default=None)

    subnet_ids: list[str] = Field(default_factory=list)
    security_groups: list[str] = Field(default_factory=list)

    api_timeout: float = Field(default=30.0)  # seconds (per EFS API call)


class StoreConfig(BaseSettings):
    """State store configuration.

    An empty database_url selects the JSON file store under BROKER_DATA_DIR.
    """

    model_config = SettingsConfigDict(env_prefix="STORE_")

    database_url: str = Field(default="")  # e.g. postgresql+asyncpg://user:pw@host/db
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10
    file_name: str | None = Field(default=None)  # default: {service_name}-services.json


class LifecycleConfig(BaseSettings):
    """Background lifecycle timing configuration."""

    model_config = SettingsConfigDict(env_prefix="LIFECYCLE_")

    poll_interval: float = Field(default=5.0)  # seconds (filesystem polling)
    mount_poll_interval: float = Field(default=0.1)  # seconds (mount target polling)
    operation_timeout: float = Field(default=1800.0)  # seconds (30 minutes)

    # Remote mutation retry (create/delete calls)
    retry_max_attempts: int = Field(default=3)
    retry_base_delay: float = Field(default=1.0)  # seconds
    retry_max_delay: float = Field(default=30.0)  # seconds


class MetricsConfig(BaseSettings):
    """Prometheus metrics configuration."""

    model_config = SettingsConfigDict(env_prefix="METRICS_")

    enabled: bool = Field(default=True)


class LoggingConfig(BaseSettings):
    """Logging configuration.

    Standard fields added to all logs:
    - schema_version: Log schema version for backwards compatibility
    - service: Service name (efs-broker)

    Rate limiting:
    - Prevents log storms from repeated poll messages
    - ERROR logs bypass rate limiting (always logged)
    """

    model_config = SettingsConfigDict(env_prefix="LOGGING_")

    level: str = Field(default="INFO")
    schema_version: str = Field(default="1.0")
    slow_threshold_ms: float = Field(default=1000.0)
    rate_limit_per_minute: int = Field(default=100)
    service_name: str = Field(default="efs-broker")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="EFSBROKER_",
        env_nested_delimiter="__",
    )

    broker: BrokerConfig = Field(default_factory=BrokerConfig)
    aws: AwsConfig = Field(default_factory=AwsConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    lifecycle: LifecycleConfig = Field(default_factory=LifecycleConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


@lru_cache
def get_settings() -> Settings:
    return Settings()
