"""
Pick & Bracket Scoring
======================

Per-pick scoring against a finished match, in three independent buckets
that are summed, never capped:

  exact     both predicted scores right → ``exactScoreBoth``;
            exactly one side right       → ``exactScoreOne``
  result    predicted outcome (from the predicted scores) equals the actual
            outcome (from the recorded score) → ``result``
  knockout  knockout stages only, when the match has a recorded winner and
            the stage defines ``knockoutWinner``: predicted winner equals
            actual winner → ``knockoutWinner``

Only a *complete* pick on a FINISHED match is eligible; anything else is
left out of aggregation altogether.

The bracket game (group qualifiers, best thirds, knockout winners) is
scored separately by ``score_bracket_prediction``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from pickpool.models import (
    BracketPrediction,
    BracketScoring,
    Match,
    Outcome,
    Pick,
    Score,
    Side,
    Stage,
    StageScoring,
    normalize_team_codes,
)
from pickpool.standings import GroupSummary

_log = logging.getLogger("pickpool.scoring")


# ═══════════════════════════════════════════════════════════════
# PICK HELPERS
# ═══════════════════════════════════════════════════════════════

def outcome_from_scores(home: Optional[int], away: Optional[int]) -> Optional[Outcome]:
    if home is None or away is None:
        return None
    if home > away:
        return Outcome.WIN
    if home < away:
        return Outcome.LOSS
    return Outcome.DRAW


def outcome_from_score(score: Score) -> Outcome:
    return outcome_from_scores(score.home, score.away)


def is_pick_complete(match: Match, pick: Optional[Pick]) -> bool:
    """Both scores present; a predicted knockout draw also needs ``advances``."""
    if pick is None or not pick.has_scores:
        return False
    if match.stage is Stage.GROUP:
        return True
    if pick.home_score == pick.away_score:
        return pick.advances is not None
    return True


def predicted_outcome(pick: Pick) -> Optional[Outcome]:
    """Outcome derived from the predicted scores.

    A stored legacy ``outcome`` that disagrees is logged and ignored.
    """
    derived = outcome_from_scores(pick.home_score, pick.away_score)
    if pick.outcome is not None and derived is not None and pick.outcome is not derived:
        _log.warning(
            f"Pick {pick.id}: stored outcome {pick.outcome.value} disagrees with "
            f"{pick.home_score}-{pick.away_score}; using the scores"
        )
    return derived


def predicted_winner(pick: Pick) -> Optional[Side]:
    """``advances``, then legacy ``winner``, then the predicted outcome."""
    if pick.advances is not None:
        return pick.advances
    if pick.winner is not None:
        return pick.winner
    outcome = outcome_from_scores(pick.home_score, pick.away_score)
    if outcome is Outcome.WIN:
        return Side.HOME
    if outcome is Outcome.LOSS:
        return Side.AWAY
    return None


# ═══════════════════════════════════════════════════════════════
# PICK SCORING
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PickScore:
    eligible: bool
    exact_points: float = 0
    result_points: float = 0
    knockout_points: float = 0
    exact: bool = False

    @property
    def total(self) -> float:
        return self.exact_points + self.result_points + self.knockout_points

    def to_dict(self) -> dict:
        return {
            "eligible": self.eligible,
            "exactPoints": self.exact_points,
            "resultPoints": self.result_points,
            "knockoutPoints": self.knockout_points,
            "exact": self.exact,
            "total": self.total,
        }


INELIGIBLE = PickScore(eligible=False)


def _score_exact(match: Match, pick: Pick, config: StageScoring):
    if match.score is None:
        return 0, False
    home_hit = pick.home_score == match.score.home
    away_hit = pick.away_score == match.score.away
    if home_hit and away_hit:
        return config.exact_score_both, True
    if home_hit != away_hit:
        return config.exact_score_one, False
    return 0, False


def _score_result(match: Match, pick: Pick, config: StageScoring):
    if match.score is None:
        return 0
    if predicted_outcome(pick) is outcome_from_score(match.score):
        return config.result
    return 0


def _score_knockout(match: Match, pick: Pick, config: StageScoring):
    if match.stage is Stage.GROUP:
        return 0
    if match.winner is None or not config.knockout_winner:
        return 0
    if predicted_winner(pick) is match.winner:
        return config.knockout_winner
    return 0


def score_pick(match: Match, pick: Pick, config: StageScoring) -> PickScore:
    """Score one pick.  Returns ``INELIGIBLE`` unless the match is finished
    and the pick complete."""
    if not match.is_finished or not is_pick_complete(match, pick):
        return INELIGIBLE
    exact_points, exact = _score_exact(match, pick, config)
    return PickScore(
        eligible=True,
        exact_points=exact_points,
        result_points=_score_result(match, pick, config),
        knockout_points=_score_knockout(match, pick, config),
        exact=exact,
    )


# ═══════════════════════════════════════════════════════════════
# BRACKET SCORING
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class BracketScore:
    group_points: float = 0
    best_third_points: float = 0
    knockout_points: float = 0

    @property
    def total(self) -> float:
        return self.group_points + self.best_third_points + self.knockout_points


def score_bracket_prediction(
    prediction: BracketPrediction,
    standings: Dict[str, GroupSummary],
    matches: Iterable[Match],
    scoring: BracketScoring,
    best_thirds: Optional[List[str]] = None,
) -> BracketScore:
    """Score a whole bracket.

    Group picks count only once their group is complete; either predicted
    slot scores if the team finished in the top two.  Best thirds score
    against the determined set (None means not known yet).  Knockout picks
    score per finished match with a recorded winner.
    """
    group_points = 0
    for group_id, summary in standings.items():
        if not summary.complete:
            continue
        actual = set(summary.top_two())
        predicted = prediction.group_pick(group_id)
        for code in (predicted.first, predicted.second):
            if code and code in actual:
                group_points += scoring.group_qualifiers

    third_points = 0
    if best_thirds:
        actual_thirds = set(normalize_team_codes(best_thirds))
        for code in normalize_team_codes(prediction.best_thirds):
            if code in actual_thirds:
                third_points += scoring.best_third_points

    knockout_points = 0
    for match in matches:
        if match.stage is Stage.GROUP or not match.is_finished or match.winner is None:
            continue
        if prediction.knockout_pick(match.stage, match.id) is match.winner:
            knockout_points += scoring.knockout.get(match.stage, 0)

    return BracketScore(
        group_points=group_points,
        best_third_points=third_points,
        knockout_points=knockout_points,
    )
