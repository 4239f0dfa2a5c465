"""
Value representation helpers.

Wire conventions used by the Afero cloud:
- Booleans are a one-byte flag: "01" is true, anything else is false.
- Integers are hex byte pairs in little-endian order (300 -> "2c01").
- Strings pass through unchanged.

The color helpers convert between HomeKit-style HSV/Kelvin values and
the RGB hex strings the cloud stores for `color-rgb`.
"""

import math
from typing import Any, Optional, Tuple, Union

from .models import Missing, ValueType

TRUE_FLAG = "01"
FALSE_FLAG = "00"


def encode_boolean(value: bool) -> str:
    return TRUE_FLAG if value else FALSE_FLAG


def encode_integer(value: int) -> str:
    """Encode a non-negative integer as little-endian hex byte pairs."""
    if value < 0:
        raise ValueError(f"Cannot encode negative integer {value}")
    length = max(1, (value.bit_length() + 7) // 8)
    return value.to_bytes(length, "little").hex()


def decode_integer(text: str) -> int:
    """Decode little-endian hex byte pairs. Raises ValueError on bad input."""
    text = text.strip()
    if len(text) % 2:
        text = "0" + text
    return int.from_bytes(bytes.fromhex(text), "little")


def encode_value(value: Any, value_type: Optional[ValueType] = None) -> str:
    """
    Serialize a value for an attribute write.

    When `value_type` is not given it is inferred from the Python type.
    """
    if value_type is None:
        # bool is a subclass of int, check it first
        if isinstance(value, bool):
            value_type = ValueType.BOOLEAN
        elif isinstance(value, int):
            value_type = ValueType.INTEGER
        elif isinstance(value, str):
            value_type = ValueType.STRING
        else:
            raise TypeError(f"The value type {type(value).__name__} is not supported")

    if value_type == ValueType.BOOLEAN:
        return encode_boolean(bool(value))
    if value_type == ValueType.INTEGER:
        return encode_integer(int(value))
    return str(value)


def as_boolean(raw: Any) -> Union[bool, Missing]:
    """Interpret a raw wire value as a boolean; sentinels pass through."""
    if isinstance(raw, Missing):
        return raw
    if isinstance(raw, bool):
        return raw
    return str(raw) == TRUE_FLAG


def as_integer(raw: Any) -> Union[int, Missing]:
    """Interpret a raw wire value as an integer; sentinels pass through."""
    if isinstance(raw, Missing):
        return raw
    if isinstance(raw, bool):
        return int(raw)
    if isinstance(raw, int):
        return raw
    return decode_integer(str(raw))


# =============================================================================
# RANGE AND COLOR CONVERSION
# =============================================================================

def clamp(value: float, minimum: float, maximum: float) -> float:
    return min(max(value, minimum), maximum)


def normalize_value(
    value: float,
    min_value: float,
    max_value: float,
    new_min: float,
    new_max: float,
    step: float = 1,
) -> float:
    """Rescale `value` from one range to another, rounded to `step`."""
    if max_value == min_value:
        return new_min
    normalized = (value - min_value) * (new_max - new_min) / (max_value - min_value) + new_min
    return round(normalized / step) * step


def hex_to_rgb(text: str) -> Tuple[int, int, int]:
    value = int(text, 16)
    return (value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF


def rgb_to_hex(r: int, g: int, b: int) -> str:
    return f"{r:02X}{g:02X}{b:02X}"


def hsv_to_rgb(h: float, s: float, v: float) -> Tuple[int, int, int]:
    """Hue in degrees, saturation and value in percent."""
    h = (h % 360) / 60
    s /= 100
    v /= 100

    c = v * s
    x = c * (1 - abs((h % 2) - 1))
    m = v - c

    sector = int(h)
    r, g, b = [
        (c, x, 0),
        (x, c, 0),
        (0, c, x),
        (0, x, c),
        (x, 0, c),
        (c, 0, x),
    ][sector]

    return round((r + m) * 255), round((g + m) * 255), round((b + m) * 255)


def rgb_to_hsv(r: int, g: int, b: int) -> Tuple[float, float, float]:
    """Inverse of `hsv_to_rgb`."""
    r_, g_, b_ = r / 255, g / 255, b / 255
    high = max(r_, g_, b_)
    low = min(r_, g_, b_)
    diff = high - low

    h = 0.0
    s = 0.0
    if diff > 0:
        s = diff / high * 100
        if high == r_:
            h = (60 * ((g_ - b_) / diff) + 360) % 360
        elif high == g_:
            h = (60 * ((b_ - r_) / diff) + 120) % 360
        else:
            h = (60 * ((r_ - g_) / diff) + 240) % 360

    return h, s, high * 100


def kelvin_to_rgb(kelvin: float) -> Tuple[int, int, int]:
    """Approximate RGB of a black body at the given temperature."""
    temperature = kelvin / 100

    if temperature <= 66:
        red = 255.0
        green = 99.4708025861 * math.log(temperature) - 161.1195681661
        blue = 0.0 if temperature <= 19 else 138.5177312231 * math.log(temperature - 10) - 305.0447927307
    else:
        red = 329.698727446 * math.pow(temperature - 60, -0.1332047592)
        green = 288.1221695283 * math.pow(temperature - 60, -0.0755148492)
        blue = 255.0

    return (
        round(clamp(red, 0, 255)),
        round(clamp(green, 0, 255)),
        round(clamp(blue, 0, 255)),
    )
