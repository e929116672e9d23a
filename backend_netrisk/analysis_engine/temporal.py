"""
Rolling time windows over timestamped activity.

last-30: records 0..30 whole days before `now` (future-dated records count as
recent); prev-30: 31..60 days before. Records without a usable timestamp still
count toward totals but not toward either window. Also builds the trailing
12-month series with a 3-month moving average and seasonal averages.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Hashable, Iterable, TypeVar

from backend_netrisk.analysis_engine.numeric import round_half_up

WINDOW_DAYS = 30
SECONDS_PER_DAY = 86400
MONTHS_IN_SERIES = 12
MOVING_AVERAGE_MONTHS = 3

TREND_INCREASING = "increasing"
TREND_DECREASING = "decreasing"
TREND_STABLE = "stable"

SEASON_ORDER = ("Winter", "Summer", "Monsoon", "Post-monsoon")

T = TypeVar("T")


def percent_change(last30: int, prev30: int) -> int:
    """Window-over-window change; 100 when growing from zero, 0 when both are zero."""
    if prev30 > 0:
        return round_half_up(((last30 - prev30) / prev30) * 100)
    return 100 if last30 > 0 else 0


def trend(last30: int, prev30: int) -> str:
    if last30 > prev30:
        return TREND_INCREASING
    if last30 < prev30:
        return TREND_DECREASING
    return TREND_STABLE


def season_of(month: int) -> str:
    if month == 12 or month <= 2:
        return "Winter"
    if month <= 5:
        return "Summer"
    if month <= 9:
        return "Monsoon"
    return "Post-monsoon"


@dataclass
class WindowCounts:
    total: int = 0
    last30: int = 0
    prev30: int = 0

    @property
    def percent_change(self) -> int:
        return percent_change(self.last30, self.prev30)

    @property
    def trend(self) -> str:
        return trend(self.last30, self.prev30)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "last_30_days": self.last30,
            "previous_30_days": self.prev30,
            "percent_change": self.percent_change,
            "trend": self.trend,
        }


class TemporalWindower:
    """Buckets timestamps relative to a fixed `now`."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def days_ago(self, ts: datetime) -> int:
        return math.floor((self.now - ts).total_seconds() / SECONDS_PER_DAY)

    def add(self, counts: WindowCounts, ts: datetime | None) -> None:
        counts.total += 1
        if ts is None:
            return
        delta = self.days_ago(ts)
        if delta <= WINDOW_DAYS:
            counts.last30 += 1
        elif delta <= 2 * WINDOW_DAYS:
            counts.prev30 += 1

    def window_counts(self, timestamps: Iterable[datetime | None]) -> WindowCounts:
        counts = WindowCounts()
        for ts in timestamps:
            self.add(counts, ts)
        return counts

    def bucket_by(
        self,
        records: Iterable[T],
        key: Callable[[T], Hashable | None],
        timestamp: Callable[[T], datetime | None],
    ) -> dict[Hashable, WindowCounts]:
        """Window counts per key; records whose key is None are skipped."""
        out: dict[Hashable, WindowCounts] = defaultdict(WindowCounts)
        for rec in records:
            k = key(rec)
            if k is None:
                continue
            self.add(out[k], timestamp(rec))
        return dict(out)

    def _month_keys(self, months: int) -> list[str]:
        keys: list[str] = []
        year, month = self.now.year, self.now.month
        for offset in range(months - 1, -1, -1):
            y, m = divmod((year * 12 + month - 1) - offset, 12)
            keys.append(f"{y}-{m + 1:02d}")
        return keys

    def monthly_trends(
        self,
        timestamps: Iterable[datetime | None],
        months: int = MONTHS_IN_SERIES,
    ) -> list[dict[str, Any]]:
        """Case counts per calendar month for the trailing `months`, with moving average."""
        by_month: dict[str, int] = defaultdict(int)
        for ts in timestamps:
            if ts is None:
                continue
            by_month[f"{ts.year}-{ts.month:02d}"] += 1
        series = [{"month": k, "cases": by_month.get(k, 0)} for k in self._month_keys(months)]
        out: list[dict[str, Any]] = []
        for idx, point in enumerate(series):
            window = series[max(0, idx - MOVING_AVERAGE_MONTHS + 1): idx + 1]
            avg = round_half_up(sum(p["cases"] for p in window) / len(window))
            out.append({**point, "moving_average": avg})
        return out


def seasonal_patterns(monthly: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Average monthly cases per season over a monthly_trends series."""
    agg: dict[str, list[int]] = {}
    for point in monthly:
        month = int(str(point["month"]).split("-")[1])
        agg.setdefault(season_of(month), []).append(int(point["cases"]))
    return [
        {
            "season": season,
            "average_cases": round_half_up(sum(agg[season]) / max(1, len(agg[season]))),
        }
        for season in SEASON_ORDER
        if season in agg
    ]
