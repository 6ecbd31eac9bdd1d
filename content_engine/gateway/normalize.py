"""Normalise the response bodies the drafting backend may send.

The backend has shipped several response shapes over time. Each extractor
below recognises one of them; ``parse_response`` tries them in a fixed order
and the first match wins. Anything left over is shown as pretty-printed JSON,
so a response is never rejected for its shape.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any

from content_engine.gateway.base import OutputRecord, ParsedResponse, ResponseShape
from content_engine.models.version import PublicSource

logger = logging.getLogger(__name__)

NO_OUTPUT_TEXT = "[No output from backend]"

Extractor = Callable[[Any], "tuple[OutputRecord, ...] | None"]


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _metrics(value: Any) -> dict[str, float]:
    if not isinstance(value, dict):
        return {}
    return {str(k): v for k, v in value.items() if _number(v) is not None}


def _from_outputs(data: Any) -> tuple[OutputRecord, ...] | None:
    if not isinstance(data, dict) or not isinstance(data.get("outputs"), list):
        return None
    records = []
    for item in data["outputs"]:
        if not isinstance(item, dict) or not isinstance(item.get("text"), str):
            continue
        output_type = item.get("outputType")
        records.append(
            OutputRecord(
                text=item["text"],
                output_type=output_type if isinstance(output_type, str) else None,
                score=_number(item.get("score")),
                metrics=_metrics(item.get("metrics")),
            )
        )
    return tuple(records) or None


def _from_output(data: Any) -> tuple[OutputRecord, ...] | None:
    if not isinstance(data, dict):
        return None
    output = data.get("output")
    if isinstance(output, str) and output.strip():
        return (OutputRecord(text=output),)
    return None


def _from_choices(data: Any) -> tuple[OutputRecord, ...] | None:
    if not isinstance(data, dict):
        return None
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    if isinstance(content, str) and content:
        return (OutputRecord(text=content),)
    return None


def _from_result(data: Any) -> tuple[OutputRecord, ...] | None:
    if isinstance(data, dict) and isinstance(data.get("result"), str):
        return (OutputRecord(text=data["result"]),)
    return None


def _pretty(data: Any) -> tuple[OutputRecord, ...]:
    return (OutputRecord(text=json.dumps(data, indent=2, ensure_ascii=False)),)


CHAIN: tuple[tuple[ResponseShape, Extractor], ...] = (
    (ResponseShape.OUTPUTS, _from_outputs),
    (ResponseShape.OUTPUT, _from_output),
    (ResponseShape.CHOICES, _from_choices),
    (ResponseShape.RESULT, _from_result),
)


def _public_sources(data: Any) -> tuple[PublicSource, ...]:
    if not isinstance(data, dict) or not isinstance(data.get("publicSources"), list):
        return ()
    found = []
    for item in data["publicSources"]:
        if not isinstance(item, dict):
            continue
        length = item.get("textLength")
        found.append(
            PublicSource(
                title=str(item.get("title") or item.get("url") or ""),
                url=str(item.get("url") or ""),
                text_length=length if isinstance(length, int) and not isinstance(length, bool) else None,
            )
        )
    return tuple(found)


def parse_response(raw: str) -> ParsedResponse:
    """Turn a successful response body into a ``ParsedResponse``."""
    try:
        data = json.loads(raw)
    except ValueError:
        data = None

    if data is None:
        logger.debug("Backend body is not JSON, using raw text (%d chars)", len(raw))
        return ParsedResponse(ResponseShape.RAW_TEXT, (OutputRecord(text=raw or NO_OUTPUT_TEXT),))

    for shape, extract in CHAIN:
        outputs = extract(data)
        if outputs:
            return ParsedResponse(shape, outputs, _public_sources(data))
    return ParsedResponse(ResponseShape.PRETTY_JSON, _pretty(data), _public_sources(data))
