"""Decode LLM responses into validated not-not items.

A response decodes to exactly one of two outcomes:

- ``Decoded``: the text was valid JSON of the expected shape. ``items`` may be
  empty, which means the model found nothing. Entries that fail validation
  are dropped and counted in ``rejected``.
- ``Malformed``: the text could not be parsed, had the wrong shape, or none
  of its entries passed validation.

Both a JSON array of items and a single JSON object are accepted. An object
(or array entry) whose ``title`` is null or blank means "no finding".
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)


class NotNotItem(BaseModel):
    """One not-not as returned by the model."""

    model_config = ConfigDict(extra="ignore")

    title: str = Field(min_length=1)
    description: str = ""
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""

    @field_validator("title")
    @classmethod
    def _strip_title(cls, v: str) -> str:
        return v.strip()

    @field_validator("description", "reasoning", mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v


@dataclass(frozen=True)
class Decoded:
    items: list[NotNotItem] = field(default_factory=list)
    rejected: int = 0


@dataclass(frozen=True)
class Malformed:
    reason: str
    raw: str = ""


DecodeResult = Decoded | Malformed


def _extract_json(text: str) -> Any:
    """Parse JSON from a model response, handling markdown code blocks.

    Raises ValueError when no JSON value can be found.
    """
    text = text.strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    # Try extracting from ```json ... ``` or ``` ... ```
    match = re.search(r"```(?:json)?\s*\n?(.*?)\n?\s*```", text, re.DOTALL)
    if match:
        try:
            return json.loads(match.group(1).strip())
        except json.JSONDecodeError:
            pass

    # Try the first [ ... ] or { ... } block, whichever opens first
    starts = [i for i in (text.find("["), text.find("{")) if i >= 0]
    for start in sorted(starts):
        closer = "]" if text[start] == "[" else "}"
        end = text.rfind(closer)
        if end > start:
            try:
                return json.loads(text[start:end + 1])
            except json.JSONDecodeError:
                continue

    raise ValueError("no JSON value found in response")


def _is_empty_finding(entry: dict) -> bool:
    title = entry.get("title")
    return title is None or (isinstance(title, str) and not title.strip())


def decode_response(text: str | None) -> DecodeResult:
    """Decode a model response into a tagged result."""
    if not text or not text.strip():
        return Malformed("empty response", text or "")

    try:
        payload = _extract_json(text)
    except ValueError as e:
        return Malformed(str(e), text)

    if isinstance(payload, dict):
        entries = [payload]
    elif isinstance(payload, list):
        entries = payload
    else:
        return Malformed(f"expected a JSON array or object, got {type(payload).__name__}", text)

    items = []
    problems = []
    for i, entry in enumerate(entries):
        if not isinstance(entry, dict):
            problems.append(f"entry {i} is not an object")
            continue
        if _is_empty_finding(entry):
            continue
        try:
            items.append(NotNotItem.model_validate(entry))
        except ValidationError as e:
            problems.append(f"entry {i} failed validation: {e.error_count()} error(s)")

    if problems and not items:
        return Malformed("; ".join(problems), text)
    for problem in problems:
        logger.warning(f"Dropping {problem}")
    return Decoded(items, rejected=len(problems))
