"""Environment-based configuration for the cluster manager."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

SERVICE_ACCOUNT_DIR = "/var/run/secrets/kubernetes.io/serviceaccount"


class Settings(BaseSettings):
    """Cluster manager configuration.

    All settings can be overridden via environment variables with
    CLUSTERMANAGER_ prefix. For example:
        CLUSTERMANAGER_HUB_URL=https://hub.example.com:6443
        CLUSTERMANAGER_COLLECT_INTERVAL_SECONDS=30
    """

    # Hub connection (in-cluster service account by default)
    hub_url: str = "https://kubernetes.default.svc"
    token_file: str = f"{SERVICE_ACCOUNT_DIR}/token"
    token: str | None = None  # overrides token_file
    ca_file: str = f"{SERVICE_ACCOUNT_DIR}/ca.crt"
    verify_tls: bool = True
    request_timeout_seconds: float = Field(default=10.0, gt=0)

    # Fleet scheduler
    collect_interval_seconds: float = Field(default=20.0, gt=0)
    collect_timeout_seconds: float = Field(default=60.0, gt=0)
    max_concurrent_collections: int = Field(default=8, ge=1)
    drain_timeout_seconds: float = Field(default=10.0, ge=0)
    show_label_key: str = "app"

    # Admission
    cluster_label: str = "open-cluster-management.io/cluster-name"
    controller_name: str = "ClusterManagerAutoAccept"
    requeue_after_seconds: float = Field(default=5.0, gt=0)
    admission_workers: int = Field(default=2, ge=1)
    reconcile_timeout_seconds: float = Field(default=30.0, gt=0)
    retry_max_attempts: int = Field(default=5, ge=0)
    retry_min_wait_seconds: float = Field(default=1.0, gt=0)
    retry_max_wait_seconds: float = Field(default=60.0, gt=0)

    # Status API
    api_host: str = "0.0.0.0"
    api_port: int = 8080

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="CLUSTERMANAGER_")
