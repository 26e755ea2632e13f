"""Rounding and display helpers shared by the quality metrics."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

Number = Union[int, float, Decimal]


def round_half_up(value: Number, digits: int = 2) -> float:
    """Round ``value`` half away from zero, unlike the built-in :func:`round`.

    Pass a :class:`~decimal.Decimal` for quotients; a float quotient may
    already sit just below the tie.

    >>> round_half_up(2.675)
    2.68
    >>> round_half_up(12.5, 0)
    13.0
    >>> round_half_up(Decimal(23) * 100 / 160)
    14.38
    """

    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    quantum = Decimal(1).scaleb(-digits)
    return float(value.quantize(quantum, rounding=ROUND_HALF_UP))


def ratio_percentage(part: int, total: int, digits: int = 2) -> float:
    """``part / total`` as a percentage, ``0`` when ``total`` is zero."""

    if total <= 0:
        return 0.0
    return round_half_up(Decimal(part) * 100 / Decimal(total), digits)


def format_time(seconds: int) -> str:
    """Human readable duration used by the dashboard.

    >>> format_time(59)
    '59 segundos'
    >>> format_time(60)
    '1 minutos'
    >>> format_time(3600)
    '1.0 horas'
    """

    if seconds < 60:
        return f"{seconds} segundos"
    if seconds < 3600:
        return f"{seconds // 60} minutos"
    return f"{round_half_up(Decimal(seconds) / 3600, 1):.1f} horas"


__all__ = ["format_time", "ratio_percentage", "round_half_up"]
