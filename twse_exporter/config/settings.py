import os
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, field_validator

DEFAULT_UPSTREAM_URL = "http://mis.twse.com.tw/stock/api/getStockInfo.jsp"

# YAML keys of the exporter config file -> Settings fields
_YAML_KEYS = {
    "exChList": "EX_CH_LIST",
    "address": "ADDRESS",
    "port": "PORT",
    "upstreamUrl": "UPSTREAM_URL",
    "upstreamTimeoutSec": "UPSTREAM_TIMEOUT_SEC",
}


def _split_ex_ch(raw: str) -> list[str]:
    return [s.strip() for s in raw.split(",") if s.strip()]


class Settings(BaseModel):
    EX_CH_LIST: list[str] = []
    ADDRESS: str = "0.0.0.0"
    PORT: int = 9101
    UPSTREAM_URL: str = DEFAULT_UPSTREAM_URL
    UPSTREAM_TIMEOUT_SEC: float = 5.0

    @field_validator("EX_CH_LIST", mode="before")
    @classmethod
    def _normalize_ex_ch_list(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return _split_ex_ch(value)
        if isinstance(value, (list, tuple)):
            return [str(s).strip() for s in value if s is not None and str(s).strip()]
        return value

    @field_validator("PORT")
    @classmethod
    def _check_port(cls, value: int) -> int:
        if not 1 <= value <= 65535:
            raise ValueError("PORT must be between 1 and 65535")
        return value

    @field_validator("UPSTREAM_TIMEOUT_SEC")
    @classmethod
    def _check_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("UPSTREAM_TIMEOUT_SEC must be positive")
        return value

    @classmethod
    def from_env(cls) -> "Settings":
        raw = {
            "EX_CH_LIST": _split_ex_ch(os.getenv("TWSE_EX_CH_LIST", "")),
            "ADDRESS": os.getenv("TWSE_ADDRESS"),
            "PORT": os.getenv("TWSE_PORT"),
            "UPSTREAM_URL": os.getenv("TWSE_UPSTREAM_URL"),
            "UPSTREAM_TIMEOUT_SEC": os.getenv("TWSE_UPSTREAM_TIMEOUT_SEC"),
        }
        # unset variables fall back to field defaults
        return cls.model_validate({k: v for k, v in raw.items() if v is not None})

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        text = Path(path).read_text(encoding="utf-8")
        loaded = yaml.safe_load(text)
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ValueError(f"config file {path} must contain a mapping")

        return cls.model_validate(
            {field: loaded[key] for key, field in _YAML_KEYS.items() if key in loaded}
        )


@lru_cache
def get_settings() -> Settings:
    config_path = os.getenv("TWSE_EXPORTER_CONFIG")
    if config_path:
        return Settings.from_yaml(config_path)
    return Settings.from_env()
