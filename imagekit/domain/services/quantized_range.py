"""Slider value quantization.

A slider track of ``length`` pixels is split evenly between a fixed list of
stops. ``value_to_position`` snaps a value to its nearest stop and returns that
stop's position on the track; ``position_to_value`` snaps a drag position to
the nearest stop rank. The two are not exact inverses for values between
stops: the search rounds ties toward the higher index and the rank mapping
rounds half up, so they can disagree by one rank near a boundary.
"""

from __future__ import annotations

import math
from collections.abc import Sequence


def _round_half_up(x: float) -> int:
    return math.floor(x + 0.5)


def _closest_ascending(values: Sequence[float], n: float) -> int:
    lo = 0
    hi = len(values) - 1
    if values[lo] > n:
        return lo
    if values[hi] < n:
        return hi
    if not values[lo] <= n <= values[hi]:
        return -1
    while True:
        mid = _round_half_up((lo + hi) / 2)
        mid_val = values[mid]
        if mid_val == n:
            return mid
        if hi == lo + 1:
            delta_lo = abs(values[lo] - n)
            delta_hi = abs(values[hi] - n)
            return hi if delta_hi <= delta_lo else lo
        if mid_val < n:
            lo = mid
        elif mid_val > n:
            hi = mid
        else:
            return -1


def closest_index(values: Sequence[float], n: float) -> int:
    """Index of the stop nearest to ``n``, -1 if ``n`` can not be compared (NaN)."""
    if not values:
        raise ValueError("stops must not be empty")
    if values[-1] < values[0]:
        return _closest_ascending([-v for v in values], -n)
    return _closest_ascending(values, n)


def value_to_position(value: float, values: Sequence[float], slider_length: float) -> float:
    index = closest_index(values, value)
    arr_length = len(values) - 1
    if arr_length == 0:
        return 0.0
    valid_index = arr_length if index == -1 else index
    return slider_length * valid_index / arr_length


def position_to_value(position: float, values: Sequence[float], slider_length: float) -> float:
    if not values:
        raise ValueError("stops must not be empty")
    arr_length = len(values) - 1
    if math.isnan(position) or position < 0 or slider_length <= 0:
        return values[0]
    if slider_length < position:
        return values[arr_length]
    return values[_round_half_up(arr_length * position / slider_length)]


def create_array(start: float, end: float, step: float) -> list[float]:
    """Stops from ``start`` toward ``end`` spaced by ``|step|``. Empty for a zero step.

    When the step does not divide the range, the last stop lands past ``end``.
    """
    if not step:
        return []
    direction = -1 if start - end > 0 else 1
    # epsilon absorbs float noise in the quotient
    count = math.ceil(abs((end - start) / step) - 1e-9) + 1
    return [start + i * abs(step) * direction for i in range(count)]
