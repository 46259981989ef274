"""
Default value parsing for function pins.

Default values are written as HLSL literals, either a single float broadcast to
every component or a floatN(...) constructor call with exactly N components.
"""

import re

import numpy as np

# Optional sign, digits with an optional fraction, optional trailing f
_FLOAT = r"\s*([-+]?\s*(?:[0-9]+\.?[0-9]*|\.[0-9]+))f?\s*"

_SCALAR_PATTERN = re.compile(f"^{_FLOAT}$")


def _constructor_pattern(dimension: int) -> re.Pattern[str]:
    components = ",".join([_FLOAT] * dimension)
    return re.compile(rf"^\s*float{dimension}\s*\({components}\)\s*$")


_CONSTRUCTOR_PATTERNS = {
    dimension: _constructor_pattern(dimension) for dimension in (2, 3, 4)
}


def _to_float(literal: str) -> float:
    return float(re.sub(r"\s+", "", literal))


def parse_default_value(text: str, dimension: int) -> np.ndarray | None:
    """Parse a default value expression.

    Args:
        text: Default value as written after the = sign
        dimension: Number of components of the pin (1 to 4)

    Returns:
        Array of 4 floats, or None if the text is not a valid default value
        for this dimension

    Raises:
        ValueError: If dimension is not between 1 and 4
    """
    if dimension not in (1, 2, 3, 4):
        raise ValueError(f"Invalid default value dimension: {dimension}")

    match = _SCALAR_PATTERN.match(text)
    if match:
        return np.full(4, _to_float(match.group(1)))

    if dimension == 1:
        return None

    match = _CONSTRUCTOR_PATTERNS[dimension].match(text)
    if not match:
        return None

    value = np.zeros(4)
    for index, literal in enumerate(match.groups()):
        value[index] = _to_float(literal)
    return value
