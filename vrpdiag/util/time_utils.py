"""Tiny time helpers for clock strings and minute offsets."""

from datetime import time
from typing import Union


def parse_hhmm(s: str) -> int:
    t = time.fromisoformat(s)  # 'HH:MM' -> time
    return t.hour * 60 + t.minute  # minutes since midnight


def to_minutes(value: Union[str, int, float]) -> float:
    if isinstance(value, str):
        return float(parse_hhmm(value.strip()))
    return float(value)


def format_minutes(mins: float) -> str:
    total = int(round(mins))
    sign = "-" if total < 0 else ""
    total = abs(total)
    return f"{sign}{total // 60:02d}:{total % 60:02d}"  # may exceed 24h on multi-day plans
