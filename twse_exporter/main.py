from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from twse_exporter.api.routes import router
from twse_exporter.config.settings import Settings, get_settings
from twse_exporter.integrations.twse_rest import TwseQuoteClient
from twse_exporter.services.snapshot_cache import SnapshotCache


def _build_fetcher(settings: Settings) -> TwseQuoteClient:
    return TwseQuoteClient(
        base_url=settings.UPSTREAM_URL,
        timeout=settings.UPSTREAM_TIMEOUT_SEC,
    )


def bind_settings(app: FastAPI, settings: Settings) -> None:
    """Pin the app to already-loaded settings (used by the CLI)."""
    app.state.get_settings = lambda: settings
    app.state.snapshot_cache.fetcher = _build_fetcher(settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = app.state.get_settings()
    # injected fetchers (tests, embedding) are left alone
    if isinstance(app.state.snapshot_cache.fetcher, TwseQuoteClient):
        app.state.snapshot_cache.fetcher = _build_fetcher(settings)
    print(
        f"[CONFIG][loaded] ex_ch_count={len(settings.EX_CH_LIST)} upstream={settings.UPSTREAM_URL} "
        f"timeout_sec={settings.UPSTREAM_TIMEOUT_SEC}",
        flush=True,
    )
    yield


app = FastAPI(title="TWSE Exporter", version="0.1.0", lifespan=lifespan)
app.include_router(router)

# NOTE: lazy-loaded so app import does not require a config file during tests.
app.state.get_settings = get_settings
app.state.snapshot_cache = SnapshotCache(fetcher=TwseQuoteClient())
