from __future__ import annotations

import time
from typing import Any, Optional

import requests
from pydantic import ValidationError

from twse_exporter.config.settings import DEFAULT_UPSTREAM_URL
from twse_exporter.errors import FetchError
from twse_exporter.schemas.quote import QuoteRecord


class TwseQuoteClient:
    """TWSE MIS quote client: one GET per call for the whole channel list."""

    RECORDS_FIELD = "msgArray"

    def __init__(
        self,
        base_url: str = DEFAULT_UPSTREAM_URL,
        timeout: float = 5,
        session: Optional[Any] = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self.session = session or requests

    @staticmethod
    def _status_code_from_error(exc: Exception) -> int | None:
        response = getattr(exc, "response", None)
        code = getattr(response, "status_code", None)
        if isinstance(code, int):
            return code
        return None

    def _parse_records(self, payload: Any) -> list[QuoteRecord]:
        if not isinstance(payload, dict):
            raise FetchError("upstream response must be a JSON object")

        rows = payload.get(self.RECORDS_FIELD)
        if rows is None:
            return []
        if not isinstance(rows, list):
            raise FetchError(f"upstream field {self.RECORDS_FIELD} must be an array")

        records: list[QuoteRecord] = []
        for index, row in enumerate(rows):
            if not isinstance(row, dict):
                raise FetchError(f"upstream record #{index} must be an object")
            try:
                records.append(QuoteRecord.model_validate(row))
            except ValidationError as exc:
                raise FetchError(f"upstream record #{index} is malformed: {exc.error_count()} error(s)") from exc
        return records

    def fetch(self, ex_ch_list: list[str]) -> list[QuoteRecord]:
        if not ex_ch_list:
            return []

        ex_ch = "|".join(ex_ch_list)
        started = time.monotonic()
        try:
            response = self.session.get(
                self.base_url,
                params={"ex_ch": ex_ch},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            status_code = self._status_code_from_error(exc)
            print(
                f"[TWSE][fetch_error] ex_ch={ex_ch} status={status_code} error={exc}",
                flush=True,
            )
            raise FetchError(f"failed to fetch stock info: {exc}", status_code=status_code) from exc

        try:
            payload = response.json()
        except ValueError as exc:
            print(f"[TWSE][decode_error] ex_ch={ex_ch} error={exc}", flush=True)
            raise FetchError(f"failed to decode upstream response: {exc}") from exc

        records = self._parse_records(payload)
        elapsed_ms = int((time.monotonic() - started) * 1000)
        print(
            f"[TWSE][fetch_ok] ex_ch={ex_ch} records={len(records)} elapsed_ms={elapsed_ms}",
            flush=True,
        )
        return records
