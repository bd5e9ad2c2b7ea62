"""Ranking engine: ordering participants and detecting ties for first place."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, Optional, Sequence, TypeVar

from .score_model import coerce_score

if TYPE_CHECKING:
    from ..models import Participant

TIE_EPSILON = 0.001

T = TypeVar("T")


@dataclass(frozen=True)
class Ranked(Generic[T]):
    """A participant paired with its 1-based position.

    Attributes
    ----------
    participant : T
        The ranked participant (usually a :class:`~contestboard.models.Participant`).
    rank : int
        1-based position. Equal scores still get distinct, consecutive ranks.
    score : float
        The score the ranking was keyed on.
    """

    participant: T
    rank: int
    score: float


@dataclass(frozen=True)
class TieResult(Generic[T]):
    """Outcome of :func:`detect_first_place_tie`.

    Attributes
    ----------
    is_tie : bool
        ``True`` when more than one participant shares the leading score.
    tied_group : list[Ranked]
        Every ranked entry within :data:`TIE_EPSILON` of the leader, in rank order.
        Contains only the leader when there is no tie; empty for an empty ranking.
    winner : Optional[Ranked]
        The single leader when there is no tie, otherwise ``None``.
    """

    is_tie: bool
    tied_group: list[Ranked[T]]
    winner: Optional[Ranked[T]]


def _stable_rank(entries: Sequence[T], scores: Sequence[float]) -> list[Ranked[T]]:
    # ``sorted`` is stable, so equal scores keep their input order.
    order = sorted(range(len(entries)), key=lambda idx: -scores[idx])
    return [
        Ranked(participant=entries[idx], rank=position, score=scores[idx])
        for position, idx in enumerate(order, start=1)
    ]


def rank(participants: Sequence["Participant"]) -> list[Ranked["Participant"]]:
    """Order ``participants`` by descending ``total_score`` and number them ``1..N``.

    Ties keep the original relative order and still receive distinct ranks
    (this is positional ranking, not competition ranking).
    """
    scores = [coerce_score(p.total_score) for p in participants]
    return _stable_rank(list(participants), scores)


def rank_next_stage(
    tied_subset: Sequence["Participant"],
) -> list[Ranked["Participant"]]:
    """Rank a tie-break group by ``next_stage_score`` (absent counts as 0).

    The rank sequence is independent of the first-round ranking and starts at 1.
    """
    scores = [coerce_score(p.next_stage_score) for p in tied_subset]
    return _stable_rank(list(tied_subset), scores)


def detect_first_place_tie(
    ranked: Sequence[Ranked[T]],
    *,
    epsilon: float = TIE_EPSILON,
) -> TieResult[T]:
    """Find every entry whose score is within ``epsilon`` of the leader's.

    Parameters
    ----------
    ranked : Sequence[Ranked]
        Output of :func:`rank`; the first entry is taken as the leader.
    epsilon : float, default: 0.001
        Absolute tolerance absorbing floating-point noise from ``0.6 * test_score``.

    Returns
    -------
    TieResult
        Tie flag, tied group, and the winner when there is exactly one leader.
    """
    if not ranked:
        return TieResult(is_tie=False, tied_group=[], winner=None)

    leader = ranked[0]
    tied = [entry for entry in ranked if abs(entry.score - leader.score) < epsilon]
    if len(tied) > 1:
        return TieResult(is_tie=True, tied_group=tied, winner=None)
    return TieResult(is_tie=False, tied_group=tied, winner=leader)


def rank_map(ranked: Sequence[Ranked["Participant"]]) -> dict[int, int]:
    """Return ``{participant.id: rank}`` for a ranking."""
    return {entry.participant.id: entry.rank for entry in ranked}


__all__ = [
    "Ranked",
    "TIE_EPSILON",
    "TieResult",
    "detect_first_place_tie",
    "rank",
    "rank_map",
    "rank_next_stage",
]
