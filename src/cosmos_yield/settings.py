"""Settings module with unified configuration precedence: CLI > ENV > CONFIG FILE."""

from __future__ import annotations

import os
import tomllib
from enum import Enum
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from .constants import (
    ARCHWAY_CHAIN_ID,
    ATOM_DENOMS,
    COSMOS_HUB_CHAIN_ID,
    DEFAULT_ARCHWAY_ASSETLIST,
    DEFAULT_ARCHWAY_LCD,
    DEFAULT_ASTROPORT_API,
    DEFAULT_ASTROVAULT_API,
    DEFAULT_COSMOS_HUB_LCD,
    DEFAULT_NEUTRON_ASSETLIST,
    DEFAULT_NEUTRON_LCD,
    DEFAULT_OSMOSIS_ASSETLIST,
    DEFAULT_OSMOSIS_LCD,
    DEFAULT_OSMOSIS_SQS,
    DEFAULT_PRICE_API,
    DEFAULT_QUICKSILVER_LCD,
    DEFAULT_RELAY_BASE,
    DEFAULT_STRIDE_LCD,
    NEUTRON_CHAIN_ID,
    TRACKED_SYMBOL,
    VALCONS_PREFIX,
)

load_dotenv()


class OutputFormat(str, Enum):
    TABLE = "table"
    JSON = "json"


class SortKey(str, Enum):
    YIELD = "yield"
    LOCKED_VALUE = "locked_value"
    PAIR = "pair"
    CHAIN = "chain"
    PLATFORM = "platform"


CONFIG_ENV_VAR = "COSMOS_YIELD_CONFIG"
CONFIG_TABLE = "cosmos_yield"


def find_config_file() -> Path | None:
    """``$COSMOS_YIELD_CONFIG`` if set, else the first default location that exists."""
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        return Path(explicit)
    for candidate in (
        Path("cosmos-yield.toml"),
        Path.home() / ".config" / "cosmos-yield" / "config.toml",
    ):
        if candidate.exists():
            return candidate
    return None


class TomlConfigSource(PydanticBaseSettingsSource):
    """Lowest-precedence source reading a TOML file.

    Keys may sit at the top level or under a ``[cosmos_yield]`` table. A
    path that does not exist yields nothing.
    """

    def __init__(self, settings_cls: type[BaseSettings], path: Path | None):
        super().__init__(settings_cls)
        self.path = path

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        return None, "", False

    def __call__(self) -> dict[str, Any]:
        if self.path is None or not self.path.is_file():
            return {}
        with self.path.open("rb") as f:
            data = tomllib.load(f)
        body = data.get(CONFIG_TABLE, data)
        return body if isinstance(body, dict) else {}


class YieldSettings(BaseSettings):
    """Single source of truth for configuration. Values may come from:
    - CLI (init kwargs)
    - ENV / .env (prefixed with COSMOS_YIELD_)
    - Config file (TOML), lowest precedence

    Do not read os.environ or files elsewhere in the codebase.
    """

    # --- sources ---
    sources: list[str] = Field(
        default_factory=lambda: [
            "osmosis",
            "astroport",
            "astrovault",
            "cosmos_hub",
            "stride",
            "quicksilver",
        ]
    )
    tracked_symbol: str = TRACKED_SYMBOL
    tracked_denoms: list[str] = Field(
        default_factory=lambda: list(ATOM_DENOMS.values())
    )

    # --- upstream endpoints ---
    cosmos_hub_lcd: str = DEFAULT_COSMOS_HUB_LCD
    osmosis_lcd: str = DEFAULT_OSMOSIS_LCD
    neutron_lcd: str = DEFAULT_NEUTRON_LCD
    archway_lcd: str = DEFAULT_ARCHWAY_LCD
    osmosis_sqs: str = DEFAULT_OSMOSIS_SQS
    astroport_api: str = DEFAULT_ASTROPORT_API
    astrovault_api: str = DEFAULT_ASTROVAULT_API
    stride_lcd: str = DEFAULT_STRIDE_LCD
    quicksilver_lcd: str = DEFAULT_QUICKSILVER_LCD
    price_api: str = DEFAULT_PRICE_API

    # --- asset registries ---
    osmosis_assetlist_url: str = DEFAULT_OSMOSIS_ASSETLIST
    neutron_assetlist_url: str = DEFAULT_NEUTRON_ASSETLIST
    archway_assetlist_url: str = DEFAULT_ARCHWAY_ASSETLIST

    # --- transport chain ---
    dev_proxy_base: str | None = None
    relay_base: str | None = DEFAULT_RELAY_BASE
    request_timeout: float = Field(default=10.0, gt=0)

    # --- cache ---
    cache_max_entries: int = Field(default=512, gt=0)
    registry_ttl_seconds: float = Field(default=3600.0, gt=0)
    registry_failure_ttl_seconds: float = Field(default=60.0, gt=0)
    pool_cache_ttl_seconds: float = Field(default=300.0, ge=0)

    # --- pagination and batching ---
    page_limit: int = Field(default=200, gt=0)
    page_retries: int = Field(default=2, ge=1)
    sqs_chunk_size: int = Field(default=150, gt=0)
    astroport_max_pools: int = Field(default=20, gt=0)
    max_validators: int = Field(default=180, gt=0)
    slash_batch_size: int = Field(default=10, gt=0)
    slash_batch_delay: float = Field(default=0.1, ge=0)
    valcons_prefix: str = VALCONS_PREFIX

    # --- timeouts ---
    source_timeout_seconds: float | None = 60.0
    global_timeout_seconds: float | None = 120.0

    # --- output ---
    output_format: OutputFormat = OutputFormat.TABLE
    sort_by: SortKey = SortKey.LOCKED_VALUE
    sort_descending: bool = True

    # --- logging ---
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="COSMOS_YIELD_",
        env_file=".env",
        extra="ignore",  # ignore unknown keys in env/config file
    )

    @model_validator(mode="after")
    def validate_registry_ttls(self) -> "YieldSettings":
        """A failed registry load must not be cached longer than a good one."""
        if self.registry_failure_ttl_seconds > self.registry_ttl_seconds:
            raise ValueError(
                f"registry_failure_ttl_seconds ({self.registry_failure_ttl_seconds}) "
                f"must not exceed registry_ttl_seconds ({self.registry_ttl_seconds})"
            )
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """CLI kwargs beat the environment, which beats the TOML file."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSource(settings_cls, find_config_file()),
            file_secret_settings,
        )

    def as_safe_dict(self) -> dict[str, Any]:
        """Return the config as a JSON-serialisable dict."""
        return self.model_dump(mode="json")

    def lcd_for_chain(self, chain_id: str | None) -> str:
        """LCD base URL used for lookups scoped to ``chain_id``.

        Unknown chains fall back to the Osmosis LCD, which carries denom
        traces for most assets the pool providers list.
        """
        lcds = {
            COSMOS_HUB_CHAIN_ID: self.cosmos_hub_lcd,
            NEUTRON_CHAIN_ID: self.neutron_lcd,
            ARCHWAY_CHAIN_ID: self.archway_lcd,
        }
        return lcds.get(chain_id or "", self.osmosis_lcd)
