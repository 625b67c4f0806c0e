"""Configuration settings for quota_cache."""

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class NamespaceConfig(BaseModel):
    """Budget and storage layout of one namespace kind."""

    storage_key: str = Field(description="Store key holding the entry map")
    meta_key: str | None = Field(
        default=None,
        description="Store key holding recency meta (defaults to <storage_key>Meta)",
    )
    area: str = Field(default="local", description="Backing storage area name")
    max_entries: int = Field(default=1000, ge=0, description="Entry-count ceiling")
    fallback_max_bytes: int = Field(
        default=64 * 1024,
        ge=0,
        description="Byte budget used when no quota can be discovered",
    )
    allocation_fraction: float = Field(
        default=0.5,
        gt=0.0,
        le=1.0,
        description="Share of the area's free bytes given to this namespace",
    )
    cap_to_item_quota: bool = Field(
        default=False,
        description="Cap max_bytes at the area's per-item quota (map stored as one item)",
    )
    allow_estimate_fallback: bool = Field(
        default=False,
        description="Use the storage estimate API when the area exposes no quota",
    )

    @model_validator(mode="after")
    def _default_meta_key(self) -> "NamespaceConfig":
        if not self.meta_key:
            self.meta_key = f"{self.storage_key}Meta"
        return self


def default_namespaces() -> dict[str, NamespaceConfig]:
    return {
        "savedPoints": NamespaceConfig(
            storage_key="savedPoints",
            area="sync",
            max_entries=5000,
            fallback_max_bytes=8 * 1024,
            allocation_fraction=0.8,
            cap_to_item_quota=True,
        ),
        "studentNames": NamespaceConfig(
            storage_key="studentNames",
            area="local",
            max_entries=10000,
            fallback_max_bytes=128 * 1024,
            allocation_fraction=0.6,
            allow_estimate_fallback=True,
        ),
    }


class Settings(BaseSettings):
    """Settings loaded from QUOTA_CACHE_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="QUOTA_CACHE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    namespaces: dict[str, NamespaceConfig] = Field(default_factory=default_namespaces)

    # Quota discovery
    trusted_context: bool = Field(
        default=True,
        description="Whether this process may call the storage estimate API",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log format (json or console)")
