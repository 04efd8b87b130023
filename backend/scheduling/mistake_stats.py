"""
Read-side rollup of finalized session forms.

Builds the progress views shown next to a student's file: the score series,
a session x exam item heatmap, a running moving average of the score and a
coarse trend label. Everything here is a pure transform of its input.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Mapping, Optional, Sequence

from backend.core import config
from backend.scheduling.mistakes import MistakeTally

TREND_IMPROVING = 'improving'
TREND_STABLE = 'stable'
TREND_DECLINING = 'declining'
TREND_INSUFFICIENT = 'insufficient_data'

TREND_MIN_SESSIONS = 3
TREND_THRESHOLD_PERCENT = 10.0


@dataclass(frozen=True)
class FinalizedSession:
    date: date
    total_points: int
    tally: MistakeTally
    penalties: Mapping[int, int] = field(default_factory=dict)


@dataclass(frozen=True)
class SeriesPoint:
    date: date
    total_points: int
    top_mistake_item: Optional[int]


@dataclass(frozen=True)
class Heatmap:
    item_ids: list[int]
    rows: list[list[int]]

    def cell(self, session_index: int, item_id: int) -> int:
        return self.rows[session_index][self.item_ids.index(item_id)]


@dataclass(frozen=True)
class MistakeStats:
    series: list[SeriesPoint]
    heatmap: Heatmap
    moving_average: list[float]
    trend: str


def top_mistake(tally: MistakeTally, penalties: Mapping[int, int]) -> Optional[int]:
    """Item with the largest penalty contribution; ties go to the higher count, then the lower id."""
    ranked = sorted(
        tally.items(),
        key=lambda entry: (-entry[1] * penalties.get(entry[0], 0), -entry[1], entry[0]),
    )
    return ranked[0][0] if ranked else None


def build_series(sessions: Sequence[FinalizedSession]) -> list[SeriesPoint]:
    return [
        SeriesPoint(
            date=session.date,
            total_points=session.total_points,
            top_mistake_item=top_mistake(session.tally, session.penalties),
        )
        for session in sessions
    ]


def build_heatmap(sessions: Sequence[FinalizedSession]) -> Heatmap:
    item_ids = sorted({item_id for session in sessions for item_id, _ in session.tally.items()})
    rows = [[session.tally.count(item_id) for item_id in item_ids] for session in sessions]
    return Heatmap(item_ids=item_ids, rows=rows)


def moving_average(values: Iterable[int], window: int) -> list[float]:
    if window < 1:
        raise ValueError('window must be at least 1')

    history: list[int] = []
    averages: list[float] = []
    for value in values:
        history.append(value)
        recent = history[-window:]
        averages.append(sum(recent) / len(recent))
    return averages


def trend(points: Sequence[int]) -> str:
    """Compare the older half of the series with the newer half; fewer points is better."""
    if len(points) < TREND_MIN_SESSIONS:
        return TREND_INSUFFICIENT

    half = len(points) // 2
    older, newer = points[:half], points[half:]
    older_avg = sum(older) / len(older)
    newer_avg = sum(newer) / len(newer)

    change = ((older_avg - newer_avg) / older_avg) * 100 if older_avg else 0.0
    if change > TREND_THRESHOLD_PERCENT:
        return TREND_IMPROVING
    if change < -TREND_THRESHOLD_PERCENT:
        return TREND_DECLINING
    return TREND_STABLE


def summarize(sessions: Sequence[FinalizedSession], window: Optional[int] = None) -> MistakeStats:
    window = window or config.STATS_MOVING_AVERAGE_WINDOW
    points = [session.total_points for session in sessions]
    return MistakeStats(
        series=build_series(sessions),
        heatmap=build_heatmap(sessions),
        moving_average=moving_average(points, window),
        trend=trend(points),
    )
