from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from retainly.domain.constants import DEFAULT_DESIRED_RETENTION, MAX_RETENTION, MIN_RETENTION


class AppConfig(BaseSettings):
    """
    Configuration model for retainly.
    Supports loading from:
    1. Environment variables (RETAINLY_*)
    2. Config file (~/.config/retainly/config.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="RETAINLY_",
        extra="ignore",
    )

    # Storage
    backend: Literal["sqlite", "memory"] = "sqlite"
    db_path: Path = Field(
        default_factory=lambda: Path.home() / ".local/share/retainly/retainly.db"
    )

    # Scheduling
    desired_retention: float = DEFAULT_DESIRED_RETENTION

    # Server
    host: str = "127.0.0.1"
    port: int = 8777

    verbose: int = 1

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # Earlier sources win: CLI overrides, then env, then the TOML file
        sources: list[PydanticBaseSettingsSource] = [init_settings, env_settings]
        config_file = Path.home() / ".config/retainly/config.toml"
        if config_file.exists():
            sources.append(TomlConfigSettingsSource(settings_cls, toml_file=config_file))
        return tuple(sources)

    @field_validator("db_path", mode="before")
    @classmethod
    def resolve_db_path(cls, v: Any) -> Path:
        return Path(v).expanduser().resolve()

    @field_validator("desired_retention")
    @classmethod
    def check_retention(cls, v: float) -> float:
        if not MIN_RETENTION <= v <= MAX_RETENTION:
            raise ValueError(
                f"desired_retention must be between {MIN_RETENTION} and {MAX_RETENTION}"
            )
        return v


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/retainly/config.toml (if exists)
    3. Environment variables (RETAINLY_*)
    4. cli_overrides (passed from Typer)
    """
    # Typer passes None for options the user did not set
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
