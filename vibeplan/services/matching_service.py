"""
VibePlan — Ranked-choice group decision engine.

Turns each participant's ranked shortlist into points, merges them into
group totals, and picks the group vibe:

  points per participant:   rank 1 -> 3, rank 2 -> 2, rank 3 -> 1
  group total:              sum over participants with state == completed
  winner:                   highest total, ties -> lexically smallest key
  confidence:               winner_total / (3 × completed_count), 2 d.p.

Quorum rules applied on top of a decision:
  provisional:  completed >= min(PROVISIONAL_QUORUM, total)
  final:        completed == total  OR  confidence >= FINAL_CONFIDENCE_THRESHOLD

All methods are pure functions of their inputs; nothing here touches storage.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Iterable, Sequence

import structlog

from vibeplan.config import get_settings
from vibeplan.schemas.core import MatchResult, Participant, Recommendation, Suggestion

logger = structlog.get_logger("vibeplan.matching_service")

# ──────────────────────────────────────────────────────────────────────────────
# Constants
# ──────────────────────────────────────────────────────────────────────────────

RANK_WEIGHTS: tuple[int, ...] = (3, 2, 1)
MAX_POINTS_PER_PARTICIPANT = RANK_WEIGHTS[0]
COMBO_SEPARATOR = "|"

SuggestionFallback = Callable[[str], Sequence[Any]]


def _round2(value: Decimal) -> float:
    return float(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class MatchingService:
    """Scoring, winner selection, quorum flags and suggestion lookup.

    Thresholds are read from settings at construction so tests can patch
    ``get_settings`` the same way they do for every other service.
    """

    def __init__(self) -> None:
        settings = get_settings()
        self.provisional_quorum: int = settings.PROVISIONAL_QUORUM
        self.final_threshold: float = settings.FINAL_CONFIDENCE_THRESHOLD
        self.max_suggestions: int = settings.MAX_SUGGESTIONS

    # ── Scoring primitives ────────────────────────────────────────────────

    def score_single(self, top_vibes: Sequence[str | None] | None) -> dict[str, int]:
        """Points for one participant's shortlist.

        Weight comes from rank position, so an empty or ``None`` entry
        forfeits its rank's points without promoting later entries.
        Entries past the third are ignored; a key repeated at two ranks
        collects both weights.
        """
        scores: dict[str, int] = {}
        if not top_vibes:
            return scores
        for weight, key in zip(RANK_WEIGHTS, top_vibes):
            if not key:
                continue
            scores[key] = scores.get(key, 0) + weight
        return scores

    def aggregate(self, participants: Iterable[Participant]) -> dict[str, int]:
        """Sum ``score_single`` over completed participants with a ranking."""
        totals: dict[str, int] = {}
        for p in participants:
            if p.state != "completed" or not p.has_ranking:
                continue
            for key, points in self.score_single(p.top_vibes).items():
                totals[key] = totals.get(key, 0) + points
        return totals

    # ── Decision selector ─────────────────────────────────────────────────

    def pick_winner(self, totals: dict[str, int]) -> dict | None:
        """Highest total wins; equal totals fall back to ascending key order."""
        if not totals:
            return None
        key, score = min(totals.items(), key=lambda item: (-item[1], item[0]))
        return {"key": key, "score": score}

    def compute_decision(self, participants: Sequence[Participant]) -> MatchResult | None:
        completed_count = sum(1 for p in participants if p.state == "completed")
        if completed_count == 0:
            return None

        winner = self.pick_winner(self.aggregate(participants))
        if winner is None:
            return None

        max_possible = MAX_POINTS_PER_PARTICIPANT * completed_count
        confidence = _round2(Decimal(winner["score"]) / Decimal(max_possible))
        return MatchResult(key=winner["key"], confidence=confidence)

    # ── Quorum rules ──────────────────────────────────────────────────────

    def is_provisional(self, decision: MatchResult | None, completed: int, total: int) -> bool:
        return decision is not None and completed >= min(self.provisional_quorum, total)

    def is_final(self, decision: MatchResult | None, completed: int, total: int) -> bool:
        # The confidence early-exit can lock in a winner before stragglers vote.
        return decision is not None and (
            completed == total or decision.confidence >= self.final_threshold
        )

    def evaluate(self, participants: Sequence[Participant]) -> dict:
        """Decision plus quorum flags for a full participant list."""
        decision = self.compute_decision(participants)
        completed = sum(1 for p in participants if p.state == "completed")
        total = len(participants)
        return {
            "decision": decision,
            "completed": completed,
            "total": total,
            "provisional": self.is_provisional(decision, completed, total),
            "final": self.is_final(decision, completed, total),
        }

    # ── Suggestion resolver ───────────────────────────────────────────────

    def resolve_suggestions(
        self,
        decision_key: str,
        catalogue: Iterable[Recommendation],
        fallback: SuggestionFallback | None = None,
    ) -> list[Suggestion]:
        """Look up suggestions for a decision key.

        Order: exact combo key, then each side of a ``a|b`` combo in turn,
        then the caller's fallback.  No match at all yields an empty list.
        """
        by_key: dict[str, Recommendation] = {}
        for entry in catalogue:
            by_key.setdefault(entry.vibe_combo_key, entry)

        exact = by_key.get(decision_key)
        if exact is not None:
            return list(exact.items[: self.max_suggestions])

        if COMBO_SEPARATOR in decision_key:
            for part in decision_key.split(COMBO_SEPARATOR):
                entry = by_key.get(part)
                if entry is not None:
                    return list(entry.items[: self.max_suggestions])

        if fallback is not None:
            items = list(fallback(decision_key))[: self.max_suggestions]
            logger.debug("suggestions_fallback_used", key=decision_key, count=len(items))
            return [Suggestion.model_validate(item) for item in items]

        return []
