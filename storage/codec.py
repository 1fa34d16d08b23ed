"""
Serialization codec for persisted collections.

A collection is stored as a JSON array of records.  Decoding never raises:
an absent, empty, unparseable or non-array value yields the caller's
fallback, and the reason is logged and passed to an optional diagnostic
callback so tests (and the CLI) can see that a fallback happened.

Records inside a readable array are normalized by their model.  One that
still does not validate is kept unvalidated, so the next write puts it back
exactly as it was read.
"""

from __future__ import annotations

import copy
import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from storage.models import Record

logger = logging.getLogger(__name__)

FallbackCallback = Callable[[str, str], None]


@dataclass
class DecodeResult:
    """Outcome of decoding one collection."""

    value: list[Any]
    used_fallback: bool = False
    error: str | None = None
    dropped: int = 0            # non-object elements skipped
    unvalidated: int = 0        # records kept as read because they failed validation


def encode(records: Sequence[Record]) -> str:
    """Serialize *records* to the persisted JSON text.

    Optional fields that are unset are left out entirely rather than written
    as ``null``.
    """
    return json.dumps(
        [r.to_wire() for r in records],
        ensure_ascii=False,
    )


def decode(
    text: str | None,
    model: type[Record],
    fallback: Sequence[Any],
    *,
    key: str = "",
    on_fallback: FallbackCallback | None = None,
) -> DecodeResult:
    """Parse *text* into a list of *model* instances.

    Args:
        text: Persisted JSON text, or None when the key is absent.
        model: Record class for each element.
        fallback: Records (or raw dicts) to return when *text* is unusable.
            A deep copy is returned so callers may mutate it freely.
        key: Storage key, used only for diagnostics.
        on_fallback: Called as ``on_fallback(key, reason)`` whenever the
            fallback is used because the stored text was unusable.

    Returns:
        DecodeResult; ``used_fallback`` tells the two outcomes apart.
    """
    if not text:
        logger.debug("No stored data for %s; using fallback", key)
        return DecodeResult(value=_materialize(fallback, model), used_fallback=True)

    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError) as exc:
        return _fail(key, f"unparseable JSON: {exc}", fallback, model, on_fallback)

    if not isinstance(data, list):
        return _fail(key, f"expected a JSON array, got {type(data).__name__}",
                     fallback, model, on_fallback)

    records: list[Any] = []
    dropped = unvalidated = 0
    for index, item in enumerate(data):
        if not isinstance(item, dict):
            dropped += 1
            logger.warning("Dropping non-object element %d in %s", index, key)
            continue
        record, problem = model.from_stored(item)
        if problem is not None:
            unvalidated += 1
            logger.warning("Keeping record %d in %s as stored: %s", index, key, problem)
        records.append(record)
    return DecodeResult(value=records, dropped=dropped, unvalidated=unvalidated)


def _fail(key: str, reason: str, fallback: Sequence[Any], model: type[Record],
          on_fallback: FallbackCallback | None) -> DecodeResult:
    logger.error("Error parsing data for key %s: %s", key, reason)
    if on_fallback is not None:
        on_fallback(key, reason)
    return DecodeResult(value=_materialize(fallback, model), used_fallback=True,
                        error=reason)


def _materialize(fallback: Sequence[Any], model: type[Record]) -> list[Any]:
    out = []
    for item in fallback:
        if isinstance(item, BaseModel):
            out.append(item.model_copy(deep=True))
        else:
            out.append(model.model_validate(copy.deepcopy(item)))
    return out
