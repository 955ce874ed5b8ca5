from __future__ import annotations

import argparse
from pathlib import Path

import uvicorn

from twse_exporter.config.settings import Settings

DEFAULT_CONFIG_PATH = "config.yaml"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Expose TWSE quotes as Prometheus gauges")
    ap.add_argument(
        "--config",
        default=None,
        help=f"Path to the YAML config file (default: {DEFAULT_CONFIG_PATH} if present, else environment)",
    )
    return ap.parse_args(argv)


def load_settings(config_path: str | None) -> Settings:
    # an explicit --config must exist; the default file is optional
    if config_path is None and Path(DEFAULT_CONFIG_PATH).is_file():
        config_path = DEFAULT_CONFIG_PATH
    if config_path:
        print(f"[CONFIG][source] file={config_path}", flush=True)
        return Settings.from_yaml(config_path)
    print("[CONFIG][source] env", flush=True)
    return Settings.from_env()


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    settings = load_settings(args.config)

    from twse_exporter.main import app, bind_settings

    bind_settings(app, settings)
    print(f"[HTTP][listen] address={settings.ADDRESS} port={settings.PORT}", flush=True)
    uvicorn.run(app, host=settings.ADDRESS, port=settings.PORT)


if __name__ == "__main__":  # pragma: no cover
    main()
