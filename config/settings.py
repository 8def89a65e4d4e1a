"""Application settings loaded from environment variables and .env files.

Uses pydantic-settings for type-safe configuration. All environment variables
are prefixed with SOC_ to avoid collisions.
"""

from pydantic_settings import BaseSettings


class AppSettings(BaseSettings):
    """Application settings loaded from environment variables and .env files."""

    # Environment
    environment: str = "development"
    debug: bool = False

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Gateway
    gateway_url: str = "http://localhost:8000"
    gateway_api_key: str | None = None
    gateway_routes_path: str | None = None
    gateway_timeout_sec: float = 30.0
    gateway_health_timeout_sec: float = 5.0
    batch_stagger_sec: float = 0.1
    description_stagger_sec: float = 0.2
    client_name: str = "shopping-orchestrator"

    # Notification bus (LavinMQ / RabbitMQ management API)
    bus_url: str | None = None
    bus_username: str = "guest"
    bus_password: str = "guest"
    bus_vhost: str = "/"
    bus_routing_key: str = "shopping.notifications"
    notification_source: str = "shopping-orchestrator"
    notification_history: int = 5
    notification_ttl_sec: float = 5.0

    # Task queue
    task_max_attempts: int = 3
    task_retry_backoff_sec: float = 5.0
    task_purge_delay_sec: float = 30.0

    # Orchestration
    health_monitor_interval_sec: float = 60.0

    # Observability
    otlp_endpoint: str | None = None
    log_level: str = "INFO"

    model_config = {"env_prefix": "SOC_", "env_file": ".env"}
