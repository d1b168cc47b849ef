"""
Canonical signing input for relay requests.

The signed bytes are the compact JSON encoding of

    {"data": <payload with top-level keys sorted>, "timestamp": <number>}

Only the top level of the payload is sorted; nested objects keep the order
they were parsed in. Numbers and strings are written the way a browser's
JSON.stringify writes them so that signatures computed client-side in
JavaScript match.
"""

import json
import math
import re
from decimal import Decimal
from typing import Any, Dict, Union

from .errors import ErrorCode, ParseError, ValidationError


Timestamp = Union[int, float]

# Beyond this magnitude JavaScript switches to exponent notation.
_JS_EXPONENT_THRESHOLD = 1e21
_JS_MAX_SAFE_INTEGER = 2 ** 53 - 1

_LONE_SURROGATE = re.compile('[\ud800-\udfff]')


def canonicalize_payload(payload: Union[str, Dict[str, Any]], timestamp: Any) -> bytes:
    """
    Convert a payload and timestamp to canonical signing bytes.

    Args:
        payload: A mapping, or a JSON string that decodes to one
        timestamp: Epoch milliseconds (number or numeric string)

    Returns:
        UTF-8 encoded bytes of the canonical JSON

    Raises:
        ParseError: If the payload is not a JSON object
        ValidationError: If the timestamp is not numeric
    """
    data = parse_payload(payload)
    ts = coerce_timestamp(timestamp)

    sorted_data = {key: data[key] for key in sorted(data.keys())}
    return _stringify({"data": sorted_data, "timestamp": ts}).encode('utf-8')


def parse_payload(payload: Union[str, Dict[str, Any]]) -> Dict[str, Any]:
    """Decode a payload string into an object; pass mappings through."""
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ParseError(f"payload is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise ParseError(f"payload must be an object, got {type(payload).__name__}")
    return payload


def coerce_timestamp(value: Any) -> Timestamp:
    """
    Coerce a caller-supplied timestamp to a number.

    Integral values are returned as int so they serialize without a
    fractional part.
    """
    if isinstance(value, bool):
        raise ValidationError(ErrorCode.BAD_TIMESTAMP, "timestamp must be numeric", field="timestamp")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            value = float(text)
        except ValueError:
            raise ValidationError(ErrorCode.BAD_TIMESTAMP, f"timestamp {value!r} is not numeric", field="timestamp")
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValidationError(ErrorCode.BAD_TIMESTAMP, "timestamp must be finite", field="timestamp")
        return _js_number(value)
    raise ValidationError(ErrorCode.BAD_TIMESTAMP, f"unsupported timestamp type {type(value).__name__}", field="timestamp")


def _js_number(value: float) -> Timestamp:
    if value.is_integer() and abs(value) < _JS_EXPONENT_THRESHOLD:
        return int(value)
    return value


# ============================================================
# JSON.stringify-compatible writer
# ============================================================

def _stringify(value: Any) -> str:
    """Compact JSON text with JavaScript number and string formatting."""
    if value is None:
        return "null"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, int):
        if abs(value) > _JS_MAX_SAFE_INTEGER:
            # JSON.parse reads every number as a double
            try:
                return _number_text(float(value))
            except OverflowError:
                return "null"
        return str(value)
    if isinstance(value, float):
        return _number_text(value)
    if isinstance(value, str):
        return _string_text(value)
    if isinstance(value, dict):
        members = (_string_text(_key_text(k)) + ":" + _stringify(v) for k, v in value.items())
        return "{" + ",".join(members) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_stringify(item) for item in value) + "]"
    raise ParseError(f"payload holds a non-JSON value of type {type(value).__name__}")


def _key_text(key: Any) -> str:
    if isinstance(key, str):
        return key
    if key is None or isinstance(key, (bool, int, float)):
        return _stringify(key)
    raise ParseError(f"payload key of type {type(key).__name__} is not allowed")


def _number_text(value: float) -> str:
    """
    Format a double the way ECMAScript Number::toString does.

    Uses the shortest round-trip digits (Python's repr), written in
    positional form for decimal exponents in [-7, 21) and as ``1.5e+21`` or
    ``1e-7`` otherwise. Non-finite values become null, as in JSON.stringify.
    """
    if not math.isfinite(value):
        return "null"
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    parts = Decimal(repr(abs(value))).as_tuple()
    digits = "".join(str(d) for d in parts.digits)
    exponent = parts.exponent
    stripped = digits.rstrip("0")
    exponent += len(digits) - len(stripped)
    digits = stripped
    k = len(digits)
    n = k + exponent

    if k <= n <= 21:
        text = digits + "0" * (n - k)
    elif 0 < n <= 21:
        text = digits[:n] + "." + digits[n:]
    elif -6 < n <= 0:
        text = "0." + "0" * (-n) + digits
    else:
        e = n - 1
        mantissa = digits if k == 1 else digits[0] + "." + digits[1:]
        text = f"{mantissa}e{'+' if e >= 0 else '-'}{abs(e)}"
    return sign + text


def _string_text(value: str) -> str:
    # json.dumps escapes quotes, backslashes and control characters exactly as
    # JSON.stringify does; surrogates are left for the two passes below.
    text = json.dumps(value, ensure_ascii=False)
    text = text.encode('utf-16', 'surrogatepass').decode('utf-16', 'surrogatepass')
    return _LONE_SURROGATE.sub(lambda m: f"\\u{ord(m.group()):04x}", text)
