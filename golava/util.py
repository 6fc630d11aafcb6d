"""Small helpers for tokens and value formatting."""

from __future__ import annotations

import base64
import math
import secrets
from decimal import Decimal
from typing import Any


def random_token(n: int) -> str:
    """Return ``n`` random bytes encoded as standard base64."""
    return base64.b64encode(secrets.token_bytes(n)).decode("ascii")


def _format_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def any_value_to_string(value: Any) -> str:
    """Render a value as text: booleans in lower case, floats without exponent."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _format_float(value)
    if value is None:
        return "<nil>"
    return str(value)