"""
Knockout Bracket Progression
============================

Fills knockout participants round over round:

  R32          slot i  = qualifier[2i]  vs qualifier[2i+1]
  R16, QF, SF  slot i  = winner(prev 2i) vs winner(prev 2i+1)
  Third        loser(SF 0) vs loser(SF 1)
  Final        winner(SF 0) vs winner(SF 1)

Slots inside a stage are ordered by kickoff then match id, as supplied by
the fixture list; no seeding is invented here.  A winner is known only once
the feeder match is FINISHED with a recorded winner; until then the slot is
``TBD``.

Integrity: a knockout match carrying a status past SCHEDULED, or any result,
while one of its participants is still ``TBD`` is reset to a clean
SCHEDULED fixture.  Non-finished matches never expose a winner.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from pickpool.models import (
    KnownTeam,
    Match,
    MatchStatus,
    Side,
    Stage,
    TBD,
    Team,
    is_known,
)
from pickpool.qualification import QualificationResult

_log = logging.getLogger("pickpool.bracket")

# stage → the stage whose winners feed it
_WINNER_FEEDS = {
    Stage.R16: Stage.R32,
    Stage.QF: Stage.R16,
    Stage.SF: Stage.QF,
}

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class BracketState:
    """Resolved snapshot: the full match list plus any integrity resets."""
    matches: List[Match] = field(default_factory=list)
    reset_match_ids: List[str] = field(default_factory=list)

    def stage_matches(self, stage: Stage) -> List[Match]:
        return order_stage([m for m in self.matches if m.stage is stage])

    def to_dict(self) -> dict:
        return {
            "matches": [m.to_dict() for m in self.matches],
            "resetMatchIds": self.reset_match_ids,
        }


def order_stage(matches: Iterable[Match]) -> List[Match]:
    """Slot order inside a stage: kickoff, then id."""
    return sorted(matches, key=lambda m: (m.kickoff or _EPOCH, m.id))


def winner_of(match: Optional[Match]) -> Team:
    if match is None or not match.is_finished or match.winner is None:
        return TBD
    return match.team(match.winner)


def loser_of(match: Optional[Match]) -> Team:
    if match is None or not match.is_finished or match.winner is None:
        return TBD
    return match.team(Side.AWAY if match.winner is Side.HOME else Side.HOME)


def _slot(matches: List[Match], index: int) -> Optional[Match]:
    return matches[index] if 0 <= index < len(matches) else None


def build_team_index(matches: Iterable[Match]) -> Dict[str, KnownTeam]:
    """Code → team, from every known participant in the snapshot."""
    index: Dict[str, KnownTeam] = {}
    for match in matches:
        for team in (match.home_team, match.away_team):
            if is_known(team) and team.code not in index:
                index[team.code] = team
    return index


def _enforce_integrity(match: Match, resets: List[str]) -> Match:
    if not (is_known(match.home_team) and is_known(match.away_team)):
        if match.status is not MatchStatus.SCHEDULED or match.has_result:
            _log.warning(
                f"Knockout match {match.id} has a result before both teams are known; "
                f"resetting to SCHEDULED"
            )
            resets.append(match.id)
            return replace(
                match,
                status=MatchStatus.SCHEDULED,
                score=None,
                winner=None,
                decided_by=None,
            )
        return match
    if not match.is_finished and (match.winner is not None or match.decided_by is not None):
        # live score may show, the decision may not
        return replace(match, winner=None, decided_by=None)
    return match


def resolve_bracket(
    matches: List[Match],
    qualification: QualificationResult,
) -> BracketState:
    """Return a copy of the snapshot with knockout participants resolved.

    Group matches pass through untouched.  Input matches are never mutated.
    """
    teams = build_team_index(m for m in matches if m.stage is Stage.GROUP)
    resolved: Dict[str, Match] = {}
    resets: List[str] = []
    by_stage: Dict[Stage, List[Match]] = {}

    def assign(match: Match, home: Team, away: Team):
        updated = _enforce_integrity(replace(match, home_team=home, away_team=away), resets)
        resolved[match.id] = updated
        by_stage.setdefault(updated.stage, []).append(updated)

    # R32 from the qualifier list
    qualifiers = qualification.qualifiers if qualification.determined else []
    for i, match in enumerate(order_stage(m for m in matches if m.stage is Stage.R32)):
        home: Team = TBD
        away: Team = TBD
        if 2 * i + 1 < len(qualifiers):
            home_code, away_code = qualifiers[2 * i], qualifiers[2 * i + 1]
            home = teams.get(home_code) or KnownTeam(home_code, home_code)
            away = teams.get(away_code) or KnownTeam(away_code, away_code)
        assign(match, home, away)

    for stage in (Stage.R16, Stage.QF, Stage.SF):
        feeders = by_stage.get(_WINNER_FEEDS[stage], [])
        for i, match in enumerate(order_stage(m for m in matches if m.stage is stage)):
            assign(
                match,
                winner_of(_slot(feeders, 2 * i)),
                winner_of(_slot(feeders, 2 * i + 1)),
            )

    semis = by_stage.get(Stage.SF, [])
    for match in order_stage(m for m in matches if m.stage is Stage.THIRD):
        assign(match, loser_of(_slot(semis, 0)), loser_of(_slot(semis, 1)))
    for match in order_stage(m for m in matches if m.stage is Stage.FINAL):
        assign(match, winner_of(_slot(semis, 0)), winner_of(_slot(semis, 1)))

    out = [resolved.get(m.id, m) for m in matches]
    known = sum(
        1 for m in resolved.values() if is_known(m.home_team) and is_known(m.away_team)
    )
    _log.info(
        f"Bracket resolved: {known}/{len(resolved)} knockout matches with both teams, "
        f"{len(resets)} reset"
    )
    return BracketState(matches=out, reset_match_ids=resets)
