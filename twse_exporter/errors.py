from __future__ import annotations


class ExporterError(Exception):
    """Base class for scrape-level failures; never fatal to the process."""


class FetchError(ExporterError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransformError(ExporterError):
    def __init__(
        self,
        message: str,
        *,
        record_index: int | None = None,
        metric_name: str | None = None,
    ) -> None:
        super().__init__(message)
        self.record_index = record_index
        self.metric_name = metric_name
