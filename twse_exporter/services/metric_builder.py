from __future__ import annotations

import math
import re
from typing import Iterable

from prometheus_client import CollectorRegistry, Gauge, generate_latest

from twse_exporter.errors import TransformError
from twse_exporter.schemas.metric import MetricInstrument
from twse_exporter.schemas.quote import QuoteRecord

_INVALID_NAME_CHARS = re.compile(r"[^A-Za-z0-9_]")
# ASCII decimal only
_DECIMAL = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")


def sanitize_metric_name(raw: str) -> str:
    name = _INVALID_NAME_CHARS.sub("_", raw)
    if not name or name[0].isdigit():
        name = f"_{name}"
    return name


def metric_name(record: QuoteRecord) -> str:
    return sanitize_metric_name(f"{record.exchange}_{record.category}_gauge")


def metric_help(record: QuoteRecord) -> str:
    return f"{record.exchange}_{record.name}於{record.date} {record.percent_change}的價格{record.price}"


def parse_price(record: QuoteRecord, *, index: int | None = None) -> float:
    where = f"{record.exchange}_{record.category}"
    if index is not None:
        where = f"record #{index} ({where})"

    raw = record.price.strip()
    if not _DECIMAL.fullmatch(raw):
        raise TransformError(f"{where} has invalid price {record.price!r}", record_index=index)
    value = float(raw)
    if not math.isfinite(value):
        raise TransformError(f"{where} has non-finite price {record.price!r}", record_index=index)
    return value


def build_instruments(records: Iterable[QuoteRecord]) -> list[MetricInstrument]:
    """Turn quote records into gauge definitions; any bad record fails the whole batch.

    Two records mapping to the same metric name is an error rather than a
    silent overwrite.
    """
    out: list[MetricInstrument] = []
    seen: dict[str, int] = {}
    for index, record in enumerate(records):
        name = metric_name(record)
        if name in seen:
            raise TransformError(
                f"duplicate metric name {name} for records #{seen[name]} and #{index}",
                record_index=index,
                metric_name=name,
            )
        seen[name] = index
        out.append(
            MetricInstrument(
                name=name,
                help=metric_help(record),
                value=parse_price(record, index=index),
            )
        )
    return out


def build_registry(instruments: Iterable[MetricInstrument]) -> CollectorRegistry:
    registry = CollectorRegistry()
    for instrument in instruments:
        try:
            gauge = Gauge(instrument.name, instrument.help, registry=registry)
        except ValueError as exc:
            raise TransformError(
                f"cannot register metric {instrument.name}: {exc}",
                metric_name=instrument.name,
            ) from exc
        gauge.set(instrument.value)
    return registry


def render_metrics(records: Iterable[QuoteRecord]) -> bytes:
    instruments = build_instruments(records)
    registry = build_registry(instruments)
    body = generate_latest(registry)
    print(f"[METRICS][built] gauges={len(instruments)} bytes={len(body)}", flush=True)
    return body
