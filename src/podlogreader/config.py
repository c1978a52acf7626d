"""Configuration for the podlogreader controller.

Settings are read from ``PODLOGREADER_*`` environment variables and may be
overridden by CLI options. They are read once when the controller is built.

Example:
    >>> from podlogreader.config import PodLogReaderSettings
    >>> settings = PodLogReaderSettings(create_sa_and_rolebinding=True)
    >>> settings.name_prefix
    'podlogreader'
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_PREFIX = "podlogreader"
DEFAULT_LABEL_KEY = f"{DEFAULT_PREFIX}-affiliate"
DEFAULT_LABEL_VALUE = "enable"
DEFAULT_POD_LIST_LIMIT = 100

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class PodLogReaderSettings(BaseSettings):
    """Runtime settings for the controller.

    Environment Variables:
        PODLOGREADER_CREATE_SA_AND_ROLEBINDING: Also manage a ServiceAccount
            and RoleBinding per Deployment.
        PODLOGREADER_NAMESPACE: Watch a single namespace (default: all).
        PODLOGREADER_KUBECONFIG_PATH: Explicit kubeconfig file.
        PODLOGREADER_LOG_LEVEL: Minimum log level.
    """

    model_config = SettingsConfigDict(
        env_prefix="PODLOGREADER_",
        frozen=True,
        extra="ignore",
    )

    create_sa_and_rolebinding: bool = Field(
        default=False,
        description="Reconcile a ServiceAccount and RoleBinding next to the Role",
    )
    namespace: str | None = Field(
        default=None,
        pattern=r"^[a-z0-9][a-z0-9-]*[a-z0-9]$|^[a-z0-9]$",
        description="Namespace to watch. None watches all namespaces.",
    )
    kubeconfig_path: str | None = Field(
        default=None,
        description="Path to kubeconfig file. None tries in-cluster config first.",
    )
    context: str | None = Field(
        default=None,
        description="Kubeconfig context to use. None uses current context.",
    )
    label_key: str = Field(
        default=DEFAULT_LABEL_KEY,
        min_length=1,
        max_length=253,
        description="Pod label that opts a Deployment in",
    )
    label_value: str = Field(
        default=DEFAULT_LABEL_VALUE,
        max_length=63,
        description="Required value of the opt-in label",
    )
    name_prefix: str = Field(
        default=DEFAULT_PREFIX,
        min_length=1,
        max_length=50,
        pattern=r"^[a-z0-9][a-z0-9-]*$",
        description="Prefix of the Role, ServiceAccount and RoleBinding names",
    )
    pod_list_limit: int = Field(
        default=DEFAULT_POD_LIST_LIMIT,
        ge=1,
        le=500,
        description="Page size used when listing the Pods of a Deployment",
    )
    paginate_pods: bool = Field(
        default=False,
        description="Follow continue tokens instead of reading only the first page",
    )
    request_timeout_seconds: float | None = Field(
        default=None,
        gt=0,
        description="Client-side timeout applied to every API request",
    )
    watch_timeout_seconds: int = Field(
        default=300,
        ge=1,
        description="Server-side timeout of a single watch stream",
    )
    log_level: LogLevel = Field(default="INFO", description="Minimum log level")
    json_logs: bool = Field(default=True, description="Render logs as JSON")

    @field_validator("kubeconfig_path")
    @classmethod
    def expand_kubeconfig_path(cls, v: str | None) -> str | None:
        """Expand ~ in kubeconfig path."""
        if v is None:
            return None
        return str(Path(v).expanduser())

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: object) -> object:
        if isinstance(v, str):
            return v.upper()
        return v


__all__ = [
    "DEFAULT_LABEL_KEY",
    "DEFAULT_LABEL_VALUE",
    "DEFAULT_POD_LIST_LIMIT",
    "DEFAULT_PREFIX",
    "PodLogReaderSettings",
]
