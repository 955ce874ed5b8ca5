from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class QuoteRecord(BaseModel):
    """One entry of the upstream ``msgArray``; values are kept as raw strings."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    exchange: str = Field(default="", alias="ex")
    category: str = Field(default="", alias="c")
    name: str = Field(default="", alias="n")
    date: str = Field(default="", alias="d")
    percent_change: str = Field(default="", alias="%")
    price: str = Field(default="", alias="pz")

    @field_validator("exchange", "category", "name", "date", "percent_change", "price", mode="before")
    @classmethod
    def _null_as_empty(cls, value):
        if value is None:
            return ""
        return value


class QuoteSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    ex_ch_list: tuple[str, ...]
    records: tuple[QuoteRecord, ...]
    fetched_at: float
