"""
Leaderboard
===========

Sums scored picks (and bracket points, when a bracket table is configured)
per member and ranks the result.  Entries are rebuilt from scratch on
every run.

Ranking order, a strict total order:
  total points ↓, exact points ↓, result points ↓, knockout points ↓,
  earliest scored submission ↑ (none sorts last), name ↑ (ignoring case),
  member id ↑
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from pickpool.models import (
    BracketPrediction,
    Match,
    Member,
    Pick,
    STAGE_ORDER,
    ScoringConfig,
    format_timestamp,
)
from pickpool.merge import dedupe_picks
from pickpool.qualification import resolve_best_thirds
from pickpool.scoring import score_bracket_prediction, score_pick
from pickpool.standings import compute_group_standings

_log = logging.getLogger("pickpool.leaderboard")


@dataclass
class LeaderboardEntry:
    member: Member
    total_points: float = 0
    exact_points: float = 0
    result_points: float = 0
    knockout_points: float = 0
    bracket_points: float = 0
    exact_count: int = 0
    picks_count: int = 0
    earliest_submission: Optional[datetime] = None

    def to_dict(self, rank: Optional[int] = None) -> dict:
        d = {
            "member": self.member.to_dict(),
            "totalPoints": self.total_points,
            "exactPoints": self.exact_points,
            "resultPoints": self.result_points,
            "knockoutPoints": self.knockout_points,
            "bracketPoints": self.bracket_points,
            "exactCount": self.exact_count,
            "picksCount": self.picks_count,
        }
        if self.earliest_submission is not None:
            d["earliestSubmission"] = format_timestamp(self.earliest_submission)
        if rank is not None:
            d["rank"] = rank
        return d


@dataclass
class Leaderboard:
    """Ranked snapshot.  Rank is the 1-based position in ``entries``."""
    last_updated: Optional[datetime]
    entries: List[LeaderboardEntry] = field(default_factory=list)
    dropped_picks: int = 0

    def rank_of(self, member_id: str) -> Optional[int]:
        for i, entry in enumerate(self.entries, 1):
            if entry.member.id == member_id:
                return i
        return None

    def to_dict(self) -> dict:
        return {
            "lastUpdated": format_timestamp(self.last_updated),
            "entries": [e.to_dict(rank=i) for i, e in enumerate(self.entries, 1)],
        }


def ranking_key(entry: LeaderboardEntry):
    submitted = entry.earliest_submission
    return (
        -entry.total_points,
        -entry.exact_points,
        -entry.result_points,
        -entry.knockout_points,
        submitted is None,
        submitted.timestamp() if submitted is not None else 0.0,
        entry.member.name.casefold(),
        entry.member.name,
        entry.member.id,
    )


def rank_entries(entries: Iterable[LeaderboardEntry]) -> List[LeaderboardEntry]:
    return sorted(entries, key=ranking_key)


def with_active_members(members: List[Member], active_user_ids: Iterable[str]) -> List[Member]:
    """Append a bare member for every active user missing from the roster.

    Skipped when every roster id is an email address: pick owners are then
    auth uids that cannot be matched to the roster, and guessing would list
    the same person twice.
    """
    roster = list(members)
    if roster and all("@" in m.id for m in roster):
        return roster
    known = {m.id for m in roster}
    for user_id in sorted({u for u in active_user_ids if u} - known):
        roster.append(Member(id=user_id, name=user_id))
    return roster


def check_scoring_coverage(matches: Iterable[Match], scoring: ScoringConfig):
    """Raise ``ConfigurationMissing`` for the first stage with matches but no
    scoring entry."""
    for stage in sorted({m.stage for m in matches}, key=STAGE_ORDER.index):
        scoring.for_stage(stage)


def build_leaderboard(
    members: List[Member],
    matches: List[Match],
    picks: List[Pick],
    scoring: ScoringConfig,
    bracket_predictions: Optional[Dict[str, BracketPrediction]] = None,
    best_third_override: Optional[List[str]] = None,
    last_updated: Optional[datetime] = None,
) -> Leaderboard:
    """Score every eligible pick and rank the members.

    Duplicate picks for one member and match are settled last-write-wins
    first.  Picks on unknown matches, unfinished matches or incomplete picks
    are skipped; picks owned by someone not in ``members`` are dropped and
    counted in ``dropped_picks``.
    """
    check_scoring_coverage(matches, scoring)
    picks = dedupe_picks(picks)

    match_by_id = {m.id: m for m in matches}
    entries: Dict[str, LeaderboardEntry] = {}
    for member in members:
        entries[member.id] = LeaderboardEntry(member=member)

    dropped = 0
    for pick in picks:
        match = match_by_id.get(pick.match_id)
        if match is None or not match.is_finished:
            continue
        result = score_pick(match, pick, scoring.for_stage(match.stage))
        if not result.eligible:
            continue

        entry = entries.get(pick.user_id)
        if entry is None:
            dropped += 1
            continue

        entry.exact_points += result.exact_points
        entry.result_points += result.result_points
        entry.knockout_points += result.knockout_points
        entry.total_points += result.total
        entry.picks_count += 1
        if result.exact:
            entry.exact_count += 1
        if pick.created_at is not None and (
            entry.earliest_submission is None or pick.created_at < entry.earliest_submission
        ):
            entry.earliest_submission = pick.created_at

    if dropped:
        _log.warning(f"Dropped {dropped} scored picks owned by unknown members")

    if bracket_predictions and scoring.bracket is not None:
        standings = compute_group_standings(matches)
        best_thirds = resolve_best_thirds(standings, best_third_override)
        for user_id, prediction in bracket_predictions.items():
            entry = entries.get(user_id)
            if entry is None:
                continue
            bracket = score_bracket_prediction(
                prediction, standings, matches, scoring.bracket, best_thirds,
            )
            entry.bracket_points = bracket.total
            entry.total_points += bracket.total

    ranked = rank_entries(entries.values())
    _log.info(f"Leaderboard built: {len(ranked)} members, {len(picks)} picks considered")
    return Leaderboard(last_updated=last_updated, entries=ranked, dropped_picks=dropped)
