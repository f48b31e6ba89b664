"""
hms_core/intervals.py

半开区间 [start, end) 运算
退房时刻等于下一位入住时刻时两段区间相接，不视为冲突
"""
from datetime import date, datetime
from typing import Iterable, Optional, Union

Instant = Union[date, datetime]


def overlaps(s1: Instant, e1: Instant, s2: Instant, e2: Instant) -> bool:
    """[s1, e1) 与 [s2, e2) 相交当且仅当 s1 < e2 且 s2 < e1"""
    return s1 < e2 and s2 < e1


def is_valid_range(start: Instant, end: Instant, now: Optional[Instant] = None) -> bool:
    """起点早于终点；给定 now 时起点不得早于 now"""
    if not start < end:
        return False
    if now is not None and start < now:
        return False
    return True


def peak_load(bookings: Iterable[tuple]) -> int:
    """
    计算一组 (start, end, quantity) 在任意时刻叠加的最大数量

    区间终点先于同一时刻的起点处理，相接区间不叠加。
    """
    events = []
    for start, end, quantity in bookings:
        events.append((start, 1, quantity))
        events.append((end, 0, -quantity))
    # 同一时刻: 终点(0) 排在起点(1) 之前
    events.sort(key=lambda e: (e[0], e[1]))

    current = 0
    peak = 0
    for _, _, delta in events:
        current += delta
        peak = max(peak, current)
    return peak
