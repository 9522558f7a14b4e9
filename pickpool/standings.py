"""
Group Standings
===============

Round-robin group tables derived from the match snapshot.  Nothing here is
stored: every call rebuilds the tables from the finished group matches.

Scoring: 3 points for a win, 1 each for a draw, decided by the recorded
score.  Tie-break chain: points, goal difference, goals for (all
descending), then team code ascending, which makes the order total.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

from pickpool.models import KnownTeam, Match, Stage, is_known

_log = logging.getLogger("pickpool.standings")

WIN_POINTS = 3
DRAW_POINTS = 1


@dataclass
class GroupStandingRow:
    """One team's line in a group table."""
    team: KnownTeam
    points: int = 0
    goals_for: int = 0
    goals_against: int = 0
    played: int = 0

    @property
    def team_code(self) -> str:
        return self.team.code

    @property
    def goal_diff(self) -> int:
        return self.goals_for - self.goals_against

    def to_dict(self) -> dict:
        return {
            "team": self.team.to_dict(),
            "points": self.points,
            "goalsFor": self.goals_for,
            "goalsAgainst": self.goals_against,
            "goalDiff": self.goal_diff,
            "played": self.played,
        }


def tiebreak_key(row: GroupStandingRow) -> Tuple[int, int, int, str]:
    """Sort key for the tie-break chain; smaller sorts first."""
    return (-row.points, -row.goal_diff, -row.goals_for, row.team_code)


def rank_rows(rows: Iterable[GroupStandingRow]) -> List[GroupStandingRow]:
    return sorted(rows, key=tiebreak_key)


@dataclass
class GroupSummary:
    """A group's ordered table and whether all its matches are finished."""
    group_id: str
    complete: bool = True
    rows: List[GroupStandingRow] = field(default_factory=list)
    matches_total: int = 0
    matches_finished: int = 0

    def row_at(self, rank: int):
        """1-based rank lookup; None past the end of the table."""
        if 1 <= rank <= len(self.rows):
            return self.rows[rank - 1]
        return None

    def top_two(self) -> List[str]:
        return [row.team_code for row in self.rows[:2]]

    def to_dict(self) -> dict:
        return {
            "group": self.group_id,
            "complete": self.complete,
            "matchesTotal": self.matches_total,
            "matchesFinished": self.matches_finished,
            "standings": [row.to_dict() for row in self.rows],
        }


class _GroupTable:
    """Mutable accumulator used only while a summary is being built."""

    def __init__(self, group_id: str):
        self.group_id = group_id
        self.complete = True
        self.total = 0
        self.finished = 0
        self.table: Dict[str, GroupStandingRow] = {}

    def _row(self, team: KnownTeam) -> GroupStandingRow:
        row = self.table.get(team.code)
        if row is None:
            row = GroupStandingRow(team=team)
            self.table[team.code] = row
        return row

    def record_result(self, match: Match):
        hs, as_ = match.score.home, match.score.away
        home = self._row(match.home_team)
        away = self._row(match.away_team)

        home.played += 1
        away.played += 1
        home.goals_for += hs
        home.goals_against += as_
        away.goals_for += as_
        away.goals_against += hs

        if hs > as_:
            home.points += WIN_POINTS
        elif as_ > hs:
            away.points += WIN_POINTS
        else:
            home.points += DRAW_POINTS
            away.points += DRAW_POINTS

    def summary(self) -> GroupSummary:
        return GroupSummary(
            group_id=self.group_id,
            complete=self.complete,
            rows=rank_rows(self.table.values()),
            matches_total=self.total,
            matches_finished=self.finished,
        )


def compute_group_standings(matches: Iterable[Match]) -> Dict[str, GroupSummary]:
    """Build every group's table from the match snapshot.

    Only group matches with a group id take part.  A team gets a row once it
    has played a finished match, so a team with nothing but unplayed
    fixtures is absent from its table.  A group is complete only when all of
    its matches are finished with a score.
    """
    tables: Dict[str, _GroupTable] = {}

    for match in matches:
        if match.stage is not Stage.GROUP or not match.group:
            continue
        table = tables.get(match.group)
        if table is None:
            table = _GroupTable(match.group)
            tables[match.group] = table
        table.total += 1

        if not match.is_finished or match.score is None:
            table.complete = False
            continue
        if not (is_known(match.home_team) and is_known(match.away_team)):
            _log.warning(f"Finished group match {match.id} has an unresolved team; skipped")
            table.complete = False
            continue

        table.finished += 1
        table.record_result(match)

    summaries = {gid: tables[gid].summary() for gid in sorted(tables)}
    _log.debug(
        f"Standings built for {len(summaries)} groups "
        f"({sum(1 for s in summaries.values() if s.complete)} complete)"
    )
    return summaries
