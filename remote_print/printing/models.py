from __future__ import annotations

"""
Pydantic models for the job-source wire protocol.

Inbound batches are parsed leniently: keys match case-insensitively, unknown
keys are ignored and missing fields take their type defaults. Enumerated print
attributes are kept as received and normalized through the helpers below, which
never fail on unrecognized values.
"""

import enum
import json
from typing import Any, Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from remote_print.core.errors import ParseError

NEW_JOBS = "NEW_JOBS"
JOB_RECEIVED = "JOB_RECEIVED"
JOB_COMPLETED = "JOB_COMPLETED"
JOB_FAILED = "JOB_FAILED"

_MONOCHROME_MODES = {"grayscale", "greyscale", "gray", "grey", "monochrome", "mono", "bw", "black_white"}


def _lower_keys(data: Any) -> Any:
    if isinstance(data, dict):
        return {str(k).lower(): v for k, v in data.items()}
    return data


class Duplex(str, enum.Enum):
    SIMPLEX = "simplex"
    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"

    @classmethod
    def parse(cls, value: Any) -> "Duplex":
        v = str(value or "").strip().lower()
        if v == "horizontal":
            return cls.HORIZONTAL
        if v == "vertical":
            return cls.VERTICAL
        return cls.SIMPLEX


class Orientation(str, enum.Enum):
    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"

    @classmethod
    def parse(cls, value: Any) -> "Orientation":
        return cls.LANDSCAPE if str(value or "").strip().lower() == "landscape" else cls.PORTRAIT


class ColorMode(str, enum.Enum):
    COLOR = "color"
    MONOCHROME = "monochrome"

    @classmethod
    def parse(cls, value: Any) -> "ColorMode":
        return cls.MONOCHROME if str(value or "").strip().lower() in _MONOCHROME_MODES else cls.COLOR


class PrintJob(BaseModel):
    """One print request as sent by the job source. Immutable once parsed."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    job_id: int = 0
    size: int = 0
    copies: int = 0
    start_page: int = 0
    end_page: int = 0
    file: str = ""
    color_mode: str = ""
    orientation: str = ""
    paper_size: str = ""
    duplex: str = ""

    @model_validator(mode="before")
    @classmethod
    def _case_insensitive_keys(cls, data: Any) -> Any:
        return _lower_keys(data)

    @field_validator("file", "color_mode", "orientation", "paper_size", "duplex", mode="before")
    @classmethod
    def _none_as_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("job_id", "size", "copies", "start_page", "end_page", mode="before")
    @classmethod
    def _none_as_zero(cls, v: Any) -> Any:
        return 0 if v is None else v

    @property
    def effective_copies(self) -> int:
        return max(1, self.copies)

    @property
    def first_page_index(self) -> int:
        """Zero-based index of the first page to print."""
        return max(1, self.start_page) - 1

    @property
    def duplex_mode(self) -> Duplex:
        return Duplex.parse(self.duplex)

    @property
    def landscape(self) -> bool:
        return Orientation.parse(self.orientation) is Orientation.LANDSCAPE

    @property
    def monochrome(self) -> bool:
        return ColorMode.parse(self.color_mode) is ColorMode.MONOCHROME


class InboundMessage(BaseModel):
    """Envelope of every message received from the job source."""

    model_config = ConfigDict(extra="ignore")

    type: str = ""
    jobs: List[PrintJob] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _case_insensitive_keys(cls, data: Any) -> Any:
        return _lower_keys(data)

    @field_validator("jobs", mode="before")
    @classmethod
    def _none_as_empty_list(cls, v: Any) -> Any:
        return [] if v is None else v

    @property
    def is_new_jobs(self) -> bool:
        return self.type == NEW_JOBS


class StatusEvent(BaseModel):
    """Outbound job status update."""

    type: Literal["JOB_RECEIVED", "JOB_COMPLETED", "JOB_FAILED"]
    job_ids: List[int] = Field(default_factory=list)

    def to_json(self) -> str:
        return json.dumps(self.model_dump(), separators=(",", ":"))


def parse_message(raw: Any) -> InboundMessage:
    """
    Decode raw text (or bytes) into an InboundMessage.

    Raises:
        ParseError if the payload is not JSON or does not match the envelope.
    """
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(f"message is not UTF-8 text: {e}") from e
    try:
        data: Dict[str, Any] = json.loads(raw)
    except (TypeError, ValueError, RecursionError) as e:
        raise ParseError(f"message is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ParseError(f"message must be a JSON object, got {type(data).__name__}")
    try:
        return InboundMessage.model_validate(data)
    except ValidationError as e:
        raise ParseError(f"message does not match the job envelope: {e.error_count()} error(s)") from e


__all__ = [
    "ColorMode",
    "Duplex",
    "InboundMessage",
    "JOB_COMPLETED",
    "JOB_FAILED",
    "JOB_RECEIVED",
    "NEW_JOBS",
    "Orientation",
    "PrintJob",
    "StatusEvent",
    "parse_message",
]
