"""Pydantic models for query configuration and JSON extraction results."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from htmlquery.settings import DEFAULT_SELECTOR


class QueryConfig(BaseModel):
    """Options for :func:`htmlquery.query.process_html` (one CLI invocation)."""

    selector: str = DEFAULT_SELECTOR
    base: str | None = None
    detect_base: bool = False
    text_only: bool = False
    ignore_whitespace: bool = False
    pretty_print: bool = False
    remove_nodes: list[str] = Field(default_factory=list)
    attributes: list[str] = Field(default_factory=list)
    compact: bool = False

    @field_validator("selector", mode="before")
    @classmethod
    def strip_selector(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v if v is not None else DEFAULT_SELECTOR

    @field_validator("base", mode="before")
    @classmethod
    def strip_base(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip() or None
        return v

    @field_validator("remove_nodes", "attributes", mode="before")
    @classmethod
    def drop_blank_entries(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, list):
            return [s.strip() for s in v if isinstance(s, str) and s.strip()]
        return v


class ExtractionFailure(BaseModel):
    """One matched element whose script text could not be decoded."""

    index: int      # position among the matched elements
    stage: str      # "locate" | "parse"
    message: str


class JsonExtraction(BaseModel):
    """Outcome of a JSON-extraction query over every matched element."""

    matched: int = 0
    values: list[Any] = Field(default_factory=list)
    failures: list[ExtractionFailure] = Field(default_factory=list)

    @property
    def all_failed(self) -> bool:
        return bool(self.failures) and not self.values
