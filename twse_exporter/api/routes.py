from fastapi import APIRouter, HTTPException, Request, Response
from prometheus_client import CONTENT_TYPE_LATEST

from twse_exporter.errors import FetchError, TransformError
from twse_exporter.services.metric_builder import render_metrics

router = APIRouter()


@router.get('/metrics')
def scrape_metrics(request: Request):
    settings = request.app.state.get_settings()
    cache = request.app.state.snapshot_cache

    try:
        snapshot = cache.get(settings.EX_CH_LIST)
    except FetchError as exc:
        print(f"[HTTP][scrape_fetch_error] error={exc}", flush=True)
        raise HTTPException(status_code=500, detail='Failed to fetch stock info') from exc

    try:
        body = render_metrics(snapshot.records)
    except TransformError as exc:
        print(f"[HTTP][scrape_transform_error] error={exc}", flush=True)
        raise HTTPException(status_code=500, detail=f'Failed to build metrics: {exc}') from exc

    return Response(content=body, media_type=CONTENT_TYPE_LATEST)
