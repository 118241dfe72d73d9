"""Outcome resolution for API-Football fixtures.

The only place where a provider status or score is interpreted. Pure: no I/O,
no logging, so it is safe to call from any worker or test.
"""

from typing import Optional

from footy.models.match import (
    FINAL_STATUSES,
    INTERRUPTED_STATUSES,
    NOT_STARTED_STATUSES,
    MatchPhase,
    MatchSnapshot,
    Outcome,
)


class OutcomeError(ValueError):
    """Snapshot claims to be final but its payload cannot be resolved."""


def classify_status(status: str | None) -> MatchPhase:
    code = (status or "").strip().upper()
    if code in FINAL_STATUSES:
        return MatchPhase.final
    if code in NOT_STARTED_STATUSES:
        return MatchPhase.not_started
    if code in INTERRUPTED_STATUSES:
        return MatchPhase.interrupted
    # 1H, HT, 2H, ET, BT, P, LIVE and anything unknown
    return MatchPhase.in_progress


def is_final(status: str | None) -> bool:
    return classify_status(status) is MatchPhase.final


def resolve_outcome(snapshot: MatchSnapshot) -> Optional[Outcome]:
    """Return the 1X2 outcome of a final match, or None while it is pending.

    Missing goal values on a final match count as zero.
    """
    if not is_final(snapshot.status):
        return None

    home = 0
    away = 0
    if snapshot.score is not None:
        home = snapshot.score.home if snapshot.score.home is not None else 0
        away = snapshot.score.away if snapshot.score.away is not None else 0
    if home < 0 or away < 0:
        raise OutcomeError(
            f"Fixture {snapshot.match_id} has negative goals: {home}-{away}"
        )

    if home > away:
        return Outcome.home
    if away > home:
        return Outcome.away
    return Outcome.draw
