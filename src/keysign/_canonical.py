"""Matrix canonical JSON for Ed25519 signing.

Produces a canonical byte representation by:
- Sorting object keys recursively by code point
- No whitespace (separators=(',', ':'))
- Raw UTF-8 strings; only '"', '\\' and U+0000-U+001F are escaped
- null members kept
- Integers only, within [-(2**53 - 1), 2**53 - 1]
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Any, Union

from keysign.exceptions import CanonicalJsonError, NonCanonicalNumberError

JsonValue = Union[None, bool, int, float, str, list, dict]

MAX_SAFE_INTEGER = 2**53 - 1


def _check_integer(value: int) -> int:
    if not -MAX_SAFE_INTEGER <= value <= MAX_SAFE_INTEGER:
        raise NonCanonicalNumberError(f"Integer out of safe range: {value}")
    return int(value)


def _normalize(obj: Any) -> Any:
    """Recursively validate a value and reduce it to plain JSON types."""
    if obj is None or isinstance(obj, (bool, str)):
        return obj
    if isinstance(obj, int):
        return _check_integer(obj)
    if isinstance(obj, float):
        if not math.isfinite(obj) or not obj.is_integer():
            raise NonCanonicalNumberError(f"Non-integer number: {obj!r}")
        return _check_integer(int(obj))
    if isinstance(obj, Mapping):
        normalized = {}
        for key, value in obj.items():
            if not isinstance(key, str):
                raise CanonicalJsonError(f"Object key must be a string, got {key!r}")
            normalized[key] = _normalize(value)
        return normalized
    if isinstance(obj, (list, tuple)):
        return [_normalize(item) for item in obj]
    raise CanonicalJsonError(f"Unsupported JSON type: {type(obj).__name__}")


def canonical_json(obj: Any) -> bytes:
    """Produce canonical JSON bytes from a JSON value.

    The output is deterministic: structurally equal values always produce the
    same bytes, regardless of key insertion order. Used as the signing payload
    for Ed25519 signatures.

    Raises NonCanonicalNumberError for fractional or out-of-range numbers and
    CanonicalJsonError for anything else that is not plain JSON.
    """
    normalized = _normalize(obj)
    text = json.dumps(
        normalized,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )
    try:
        return text.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise CanonicalJsonError(f"String is not valid Unicode: {exc.reason}") from exc


def _parse_float(literal: str) -> int:
    try:
        number = Decimal(literal)
    except InvalidOperation as exc:
        raise NonCanonicalNumberError(f"Invalid number: {literal}") from exc
    if abs(number) > MAX_SAFE_INTEGER:
        raise NonCanonicalNumberError(f"Number out of safe range: {literal}")
    if number != number.to_integral_value():
        raise NonCanonicalNumberError(f"Non-integer number: {literal}")
    return int(number)


def _parse_int(literal: str) -> int:
    value = int(literal)
    if abs(value) > MAX_SAFE_INTEGER:
        raise NonCanonicalNumberError(f"Integer out of safe range: {literal}")
    return value


def _parse_constant(literal: str) -> Any:
    raise NonCanonicalNumberError(f"Non-finite number: {literal}")


def _unique_pairs(pairs: list[tuple[str, Any]]) -> dict:
    obj: dict = {}
    for key, value in pairs:
        if key in obj:
            raise CanonicalJsonError(f"Duplicate object key: {key!r}")
        obj[key] = value
    return obj


def parse_json(text: Union[str, bytes]) -> JsonValue:
    """Parse JSON text strictly for later canonicalization.

    \\uXXXX escapes are resolved to their code points. Fractional or
    non-finite number literals, integers outside the safe range and
    duplicate keys are rejected.
    """
    try:
        return json.loads(
            text,
            parse_float=_parse_float,
            parse_int=_parse_int,
            parse_constant=_parse_constant,
            object_pairs_hook=_unique_pairs,
        )
    except CanonicalJsonError:
        raise
    except ValueError as exc:
        raise CanonicalJsonError(f"Invalid JSON: {exc}") from exc


def canonicalize_text(text: Union[str, bytes]) -> bytes:
    """Canonicalize a JSON document given as text."""
    return canonical_json(parse_json(text))
