"""
Canonical Request Construction

Turns "what was requested" into a single deterministic string that both the
client and the server can sign. Incidental differences (JSON key order, query
parameter order, percent-encoding of the path) never change the result.

Canonical Request Format:
    {METHOD}\n{PATH}\n{SORTED_QUERY}\n{TIMESTAMP}\n{BODY_DIGEST}

Where:
    - METHOD: upper-cased HTTP method
    - PATH: percent-normalized request path
    - SORTED_QUERY: k=v pairs sorted by key, encodeURIComponent-style, joined with &
    - TIMESTAMP: the X-Request-Timestamp header value, verbatim (epoch ms)
    - BODY_DIGEST: SHA-256 hex of the canonical JSON body, or "" when there is no body
"""

import hashlib
import json
import math
from collections.abc import Mapping
from decimal import Decimal
from typing import Any, Iterable, Tuple, Union
from urllib.parse import parse_qsl, quote, unquote, urlsplit


# Methods whose payload takes part in the signature
BODY_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})

# encodeURIComponent leaves these unescaped in addition to quote()'s A-Z a-z 0-9 _ . - ~
_COMPONENT_SAFE = "!*'()"

# Path characters left as-is after normalization (RFC 3986 pchar minus unreserved)
_PATH_SAFE = "/:@!$&'()*+,;="

# Decimal exponent range JSON.stringify prints without an exponent
_MAX_PLAIN_EXPONENT = 21
_MIN_PLAIN_EXPONENT = -6

# Origin used to parse origin-relative request targets
_RELATIVE_BASE = "http://localhost"

QueryInput = Union[str, Mapping, Iterable[Tuple[Any, Any]], None]


def _code_unit_key(text: str) -> bytes:
    """Sort key matching JavaScript's default string ordering (UTF-16 code units)."""
    return text.encode("utf-16-be", "surrogatepass")


def sort_keys_deep(value: Any) -> Any:
    """
    Recursively sort object keys of a JSON-compatible value.

    Dict keys are ordered at every nesting level; lists keep their element
    order; None, bools, numbers and strings pass through unchanged.

    Raises:
        TypeError: For values that have no JSON representation
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (list, tuple)):
        return [sort_keys_deep(item) for item in value]
    if isinstance(value, Mapping):
        for key in value:
            if not isinstance(key, str):
                raise TypeError(f"JSON object keys must be strings, got {type(key).__name__}")
        return {key: sort_keys_deep(value[key]) for key in sorted(value, key=_code_unit_key)}
    raise TypeError(f"Value of type {type(value).__name__} is not JSON serializable")


def js_number(value: float) -> str:
    """
    Format a float the way JavaScript's Number toString does.

    Uses the shortest round-trip digits (Python's repr) and ECMAScript's
    layout rules: plain decimal notation for 1e-6 <= |x| < 1e21, otherwise
    an exponent without zero padding (1e-7, 1.5e+300).

    Raises:
        ValueError: For NaN and Infinity
    """
    if not math.isfinite(value):
        raise ValueError("NaN and Infinity have no canonical JSON form")
    if value == 0:
        return "0"
    if value < 0:
        return "-" + js_number(-value)

    _, digit_tuple, exponent = Decimal(repr(value)).as_tuple()
    digits = list(digit_tuple)
    while len(digits) > 1 and digits[-1] == 0:
        digits.pop()
        exponent += 1
    text = "".join(str(d) for d in digits)
    k = len(text)
    # value == 0.<text> * 10**n
    n = exponent + k

    if k <= n <= _MAX_PLAIN_EXPONENT:
        return text + "0" * (n - k)
    if 0 < n <= _MAX_PLAIN_EXPONENT:
        return text[:n] + "." + text[n:]
    if _MIN_PLAIN_EXPONENT < n <= 0:
        return "0." + "0" * -n + text
    e = n - 1
    sign = "+" if e >= 0 else "-"
    mantissa = text if k == 1 else text[0] + "." + text[1:]
    return f"{mantissa}e{sign}{abs(e)}"


def _serialize(value: Any) -> str:
    if value is None:
        return "null"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return js_number(value)
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, list):
        return "[" + ",".join(_serialize(item) for item in value) + "]"
    return "{" + ",".join(
        f"{json.dumps(key, ensure_ascii=False)}:{_serialize(item)}" for key, item in value.items()
    ) + "}"


def canonical_json(value: Any) -> str:
    """
    Compact, key-sorted JSON text of a body, as JSON.stringify would emit it.

    Example:
        >>> canonical_json({"quantity": 2.0, "productId": "P1", "ratio": 1e-7})
        '{"productId":"P1","quantity":2,"ratio":1e-7}'
    """
    return _serialize(sort_keys_deep(value))


def has_body(method: str, body: Any) -> bool:
    """
    Decide whether a request carries a body for signing purposes.

    A body exists only for POST/PUT/PATCH/DELETE and only when it is not
    None. Servers pass None for an empty raw payload, so "sent nothing" and
    "sent an empty string" are the same case on both sides; a literal {}
    payload is a body.
    """
    return method.upper() in BODY_METHODS and body is not None


def body_digest(body: Any, method: str) -> str:
    """
    SHA-256 hex digest of the canonical JSON body, or "" when there is no body.
    """
    if not has_body(method, body):
        return ""
    return hashlib.sha256(canonical_json(body).encode("utf-8")).hexdigest()


def canonical_path(path: str) -> str:
    """Percent-decode then re-encode a path so equivalent spellings agree."""
    if not path:
        return "/"
    return quote(unquote(path), safe=_PATH_SAFE)


def _encode_component(text: str) -> str:
    return quote(text, safe=_COMPONENT_SAFE)


def canonical_query(query: QueryInput) -> str:
    """
    Sort and re-encode query parameters.

    Accepts a raw query string (with or without the leading "?"), a mapping,
    or an iterable of (key, value) pairs. Pairs are ordered by key; repeated
    keys keep their original relative order.

    Example:
        >>> canonical_query("status=pending&b=1")
        'b=1&status=pending'
    """
    if query is None:
        return ""
    if isinstance(query, str):
        pairs = parse_qsl(query.lstrip("?"), keep_blank_values=True)
    elif isinstance(query, Mapping):
        pairs = [(str(key), str(val)) for key, val in query.items()]
    else:
        pairs = [(str(key), str(val)) for key, val in query]

    pairs = sorted(pairs, key=lambda pair: _code_unit_key(pair[0]))
    return "&".join(f"{_encode_component(key)}={_encode_component(val)}" for key, val in pairs)


def split_url(url: str) -> Tuple[str, str]:
    """
    Extract the canonical path and sorted query from a URL.

    Works with absolute URLs and origin-relative targets ("/api/x?a=1").
    Relative targets are resolved against a placeholder origin, so a path
    starting with "//" stays a path instead of being read as a host.

    Raises:
        ValueError: If the URL cannot be parsed
    """
    parts = urlsplit(url)
    if not parts.scheme:
        parts = urlsplit(_RELATIVE_BASE + (url if url.startswith("/") else "/" + url))
    # Accessing .port validates it; urlsplit alone accepts "host:abc"
    parts.port
    return canonical_path(parts.path), canonical_query(parts.query)


def create_canonical_request(
    method: str,
    path: str,
    query_string: str,
    body: Any,
    timestamp: Union[str, int],
) -> str:
    """
    Join the five canonical fields with newlines.

    Args:
        method: HTTP method
        path: Canonical path (see canonical_path)
        query_string: Already-sorted query (see canonical_query)
        body: Parsed JSON body, or None when the request has no body
        timestamp: Timestamp exactly as carried in X-Request-Timestamp

    Returns:
        Canonical request string

    Example:
        >>> create_canonical_request("GET", "/api/getOrders", "b=1&status=pending", None, "1703001234000")
        'GET\\n/api/getOrders\\nb=1&status=pending\\n1703001234000\\n'
    """
    return "\n".join([
        method.upper(),
        path,
        query_string or "",
        str(timestamp),
        body_digest(body, method),
    ])


def build_canonical_request(method: str, url: str, body: Any, timestamp: Union[str, int]) -> str:
    """Canonical request straight from a URL; what clients and the verifier both call."""
    path, query = split_url(url)
    return create_canonical_request(method, path, query, body, timestamp)
