"""Configuration management for the control plane machine set controller."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Controller settings."""

    model_config = SettingsConfigDict(
        env_prefix="CPMS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service Settings
    service_name: str = "control-plane-machine-set-controller"
    version: str = "0.1.0"
    log_level: str = "INFO"

    # Kubernetes Settings
    kubeconfig_path: Optional[str] = Field(
        default=None,
        description="Path to kubeconfig file, in-cluster config when unset",
    )
    kube_context: Optional[str] = None
    namespace: str = "openshift-machine-api"
    machine_set_name: str = "cluster"

    # Machine/Node Selection
    control_plane_node_label: str = "node-role.kubernetes.io/master"
    index_label: str = Field(
        default="machine.openshift.io/control-plane-index",
        description="Optional machine label that pins a machine to an index",
    )

    # Reconciliation Settings
    max_concurrent_reconciles: int = Field(default=1, ge=1)
    resync_interval_seconds: int = Field(default=300, ge=1)

    # Retry Settings
    retry_max_attempts: int = Field(default=5, ge=1)
    retry_min_wait_seconds: float = 1.0
    retry_max_wait_seconds: float = 30.0


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
