"""Settings for the document cache process.

The process is configured from a YAML file whose keys are hyphenated
(``dgraph-alpha-host``, ``custom-interfaces``...). ``load_settings`` reads the
file, normalises top level keys to snake_case and validates them with
``DoccacheSettings``. Environment variables prefixed with ``DOCCACHE_`` take
precedence over file values (``DOCCACHE_DGRAPH_ALPHA_HOST=alpha`` wins over
``dgraph-alpha-host: localhost``).

Example YAML::

    contract-name: dao.hypha
    doc-table-name: documents
    edge-table-name: edges
    dgraph-alpha-host: localhost
    dgraph-alpha-http-port: 8080
    prometheus-port: 2114
    start-block: 100
    type-mappings:
      - type: vote.tally
        labels:
          pass: [vote_power]
    custom-interfaces:
      - name: Votable
        fields:
          - content-group: ballot
            name: expiration
            type: time_point
            signature: true
          - name: vote
            type: vote
    logical-ids:
      - type: dho
        ids:
          - content-group: details
            name: root_node
            type: name
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from doccache.core.errors import InvalidConfigError, MissingConfigError


class TypeMappingSpec(BaseModel):
    """One ``type-mappings`` entry: labels per content group that select a type."""

    model_config = ConfigDict(extra="forbid")

    type: str = Field(..., min_length=1)
    labels: dict[str, list[str]] = Field(default_factory=dict)


class InterfaceFieldSpec(BaseModel):
    """A field of a custom interface."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    content_group: str | None = Field(default=None, alias="content-group")
    name: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)
    is_id: bool = Field(default=False, alias="is-id")
    signature: bool = False


class InterfaceSpec(BaseModel):
    """One ``custom-interfaces`` entry."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    fields: list[InterfaceFieldSpec] = Field(default_factory=list)
    types: list[str] = Field(default_factory=list)


class LogicalIdFieldSpec(BaseModel):
    """A content item promoted to primary key."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    content_group: str = Field(..., alias="content-group")
    name: str = Field(..., min_length=1)
    type: str = Field(..., min_length=1)


class LogicalIdSpec(BaseModel):
    """One ``logical-ids`` entry."""

    model_config = ConfigDict(extra="forbid")

    type: str = Field(..., min_length=1)
    ids: list[LogicalIdFieldSpec] = Field(..., min_length=1)


class DoccacheSettings(BaseSettings):
    """Validated process configuration.

    Fields
    ──────
    contract_name, doc_table_name, edge_table_name : upstream table filters
    firehose_endpoint, eos_endpoint, dfuse_api_key : stream source credentials
    dgraph_alpha_*                                 : GraphQL backend location
    prometheus_port                                : metrics HTTP port
    start_block, heart_beat_frequency              : stream positioning
    type_mappings, custom_interfaces, logical_ids  : projection policy
    """

    model_config = SettingsConfigDict(
        env_prefix="DOCCACHE_",
        extra="ignore",
    )

    # ── Upstream ─────────────────────────────────────────────────
    contract_name: str = ""
    doc_table_name: str = "documents"
    edge_table_name: str = "edges"
    firehose_endpoint: str = ""
    eos_endpoint: str = ""
    dfuse_api_key: str = ""
    start_block: int = 0
    heart_beat_frequency: int = Field(default=100, ge=1)

    # ── Backend ──────────────────────────────────────────────────
    dgraph_alpha_host: str = "localhost"
    dgraph_alpha_grpc_port: int = 9080
    dgraph_alpha_http_port: int = 8080
    request_timeout: float = Field(default=30.0, gt=0)
    schema_sync_attempts: int = Field(default=10, ge=1)
    schema_sync_delay: float = Field(default=0.5, ge=0)

    # ── Observability ────────────────────────────────────────────
    prometheus_port: int = 2112
    log_level: str = "INFO"
    log_format: Literal["console", "json"] | None = None

    # ── Projection policy ────────────────────────────────────────
    type_mappings: list[TypeMappingSpec] = Field(default_factory=list)
    custom_interfaces: list[InterfaceSpec] = Field(default_factory=list)
    logical_ids: list[LogicalIdSpec] = Field(default_factory=list)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment overrides values read from the YAML file
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @property
    def dgraph_grpc_endpoint(self) -> str:
        return f"{self.dgraph_alpha_host}:{self.dgraph_alpha_grpc_port}"

    @property
    def dgraph_http_url(self) -> str:
        return f"http://{self.dgraph_alpha_host}:{self.dgraph_alpha_http_port}"

    @property
    def gql_admin_url(self) -> str:
        return join_url(self.dgraph_http_url, "admin")

    @property
    def gql_client_url(self) -> str:
        return join_url(self.dgraph_http_url, "graphql")


def join_url(base: str, path: str) -> str:
    return f"{base.rstrip('/')}/{path}"


def normalize_keys(raw: dict[str, Any]) -> dict[str, Any]:
    """Map hyphenated top level YAML keys to settings field names."""
    return {str(key).replace("-", "_"): value for key, value in raw.items()}


def load_settings(path: str | Path) -> DoccacheSettings:
    """Read and validate the YAML configuration file.

    Raises:
        MissingConfigError: The file does not exist
        InvalidConfigError: The file is not valid YAML or fails validation
    """
    config_path = Path(path)
    if not config_path.is_file():
        raise MissingConfigError(f"Configuration file not found: {config_path}")

    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise InvalidConfigError(f"Invalid YAML in {config_path}: {e}", cause=e) from e

    if not isinstance(raw, dict):
        raise InvalidConfigError(f"Configuration root must be a mapping: {config_path}")

    try:
        return DoccacheSettings(**normalize_keys(raw))
    except ValidationError as e:
        raise InvalidConfigError(f"Invalid configuration in {config_path}: {e}", cause=e) from e


__all__ = [
    "DoccacheSettings",
    "InterfaceFieldSpec",
    "InterfaceSpec",
    "LogicalIdFieldSpec",
    "LogicalIdSpec",
    "TypeMappingSpec",
    "join_url",
    "load_settings",
    "normalize_keys",
]
