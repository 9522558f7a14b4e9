"""
Demo Simulation
===============

Deterministic fake pools for demos and UI work: members, picks, brackets
and a match snapshot advanced to one of four tournament scenarios.

Every random choice comes from a ``random.Random`` seeded with a string
built from the scenario, member and match, so a given scenario always
produces the same pool.

This module is a demo harness.  ``fill_best_thirds_for_demo`` invents
placeholder codes when real qualification is undetermined; production
paths never call it.
"""

from __future__ import annotations

import logging
import random
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional

from pickpool.bracket import resolve_bracket
from pickpool.models import (
    BEST_THIRD_SLOTS,
    BracketPrediction,
    DecidedBy,
    GroupPrediction,
    KNOCKOUT_STAGES,
    KnownTeam,
    Match,
    MatchStatus,
    Member,
    Pick,
    Score,
    Side,
    Stage,
    TBD,
    is_known,
    parse_timestamp,
)
from pickpool.qualification import QualificationResult, resolve_best_thirds, resolve_qualifiers
from pickpool.standings import GroupSummary, compute_group_standings, rank_rows

_log = logging.getLogger("pickpool.simulation")

USER_COUNT = 50
MAX_GOALS = 4
PLACEHOLDER_PREFIX = "3RD-"

SCENARIOS = {
    "group-partial": "2026-06-18T20:00:00Z",
    "group-complete": "2026-06-28T12:00:00Z",
    "knockout-partial": "2026-07-05T18:00:00Z",
    "knockout-complete": "2026-07-20T12:00:00Z",
}
DEFAULT_SCENARIO = "group-partial"


def _rng(*parts: str) -> random.Random:
    return random.Random(":".join(parts))


def _check_scenario(scenario: str) -> str:
    if scenario not in SCENARIOS:
        raise ValueError(f"Unknown scenario '{scenario}'. Valid: {sorted(SCENARIOS)}")
    return scenario


# ═══════════════════════════════════════════════════════════════
# MEMBERS & PREDICTIONS
# ═══════════════════════════════════════════════════════════════

def build_sim_members(count: int = USER_COUNT) -> List[Member]:
    members = []
    for i in range(1, count + 1):
        members.append(Member(
            id=f"sim-user-{i:02d}",
            name=f"Sim User {i}",
            email=f"sim.user{i}@example.com",
            handle=f"sim{i}",
            is_admin=i <= 5,
        ))
    return members


def build_sim_pick(user_id: str, match: Match, scenario: str, submitted: datetime) -> Pick:
    rng = _rng(scenario, user_id, match.id)
    home = rng.randrange(MAX_GOALS)
    away = rng.randrange(MAX_GOALS)
    advances: Optional[Side] = None
    decided_by: Optional[DecidedBy] = None
    if match.stage is not Stage.GROUP and home == away:
        advances = rng.choice([Side.HOME, Side.AWAY])
        decided_by = rng.choice([DecidedBy.EXTRA_TIME, DecidedBy.PENALTIES])
    return Pick(
        id=f"pick-{user_id}-{match.id}",
        match_id=match.id,
        user_id=user_id,
        home_score=home,
        away_score=away,
        advances=advances,
        decided_by=decided_by,
        created_at=submitted,
        updated_at=submitted,
    )


def build_sim_picks(
    members: List[Member],
    matches: List[Match],
    scenario: str = DEFAULT_SCENARIO,
) -> List[Pick]:
    submitted = parse_timestamp(SCENARIOS[_check_scenario(scenario)])
    return [
        build_sim_pick(member.id, match, scenario, submitted)
        for member in members
        for match in matches
    ]


def group_teams(matches: List[Match]) -> Dict[str, List[KnownTeam]]:
    """Known teams per group, sorted by code."""
    teams: Dict[str, Dict[str, KnownTeam]] = {}
    for match in matches:
        if match.stage is not Stage.GROUP or not match.group:
            continue
        for team in (match.home_team, match.away_team):
            if is_known(team):
                teams.setdefault(match.group, {})[team.code] = team
    return {gid: [by_code[c] for c in sorted(by_code)] for gid, by_code in sorted(teams.items())}


def build_sim_bracket(
    user_id: str,
    matches: List[Match],
    scenario: str = DEFAULT_SCENARIO,
) -> BracketPrediction:
    submitted = parse_timestamp(SCENARIOS[_check_scenario(scenario)])
    groups: Dict[str, GroupPrediction] = {}
    all_codes: List[str] = []
    for group_id, teams in group_teams(matches).items():
        codes = [t.code for t in teams]
        all_codes.extend(codes)
        if len(codes) == 1:
            groups[group_id] = GroupPrediction(first=codes[0])
            continue
        first, second = _rng(scenario, user_id, group_id).sample(codes, 2)
        groups[group_id] = GroupPrediction(first=first, second=second)

    thirds = sorted(all_codes, key=lambda c: (_rng(scenario, user_id, "third", c).random(), c))

    knockout = {}
    for match in matches:
        if match.stage is Stage.GROUP:
            continue
        side = _rng(scenario, user_id, match.id, "ko").choice([Side.HOME, Side.AWAY])
        knockout[(match.stage, match.id)] = side

    return BracketPrediction(
        user_id=user_id,
        groups=groups,
        best_thirds=thirds[:BEST_THIRD_SLOTS],
        knockout=knockout,
        created_at=submitted,
        updated_at=submitted,
    )


def build_sim_brackets(
    members: List[Member],
    matches: List[Match],
    scenario: str = DEFAULT_SCENARIO,
) -> Dict[str, BracketPrediction]:
    return {m.id: build_sim_bracket(m.id, matches, scenario) for m in members}


# ═══════════════════════════════════════════════════════════════
# MATCH SCENARIOS
# ═══════════════════════════════════════════════════════════════

def with_result(match: Match) -> Match:
    """Finish a match with a seeded score (and a knockout decision)."""
    rng = _rng("result", match.id)
    home = rng.randrange(MAX_GOALS)
    away = rng.randrange(MAX_GOALS)
    winner = None
    decided_by = None
    if match.stage is not Stage.GROUP:
        if home == away:
            winner = rng.choice([Side.HOME, Side.AWAY])
            decided_by = rng.choice([DecidedBy.EXTRA_TIME, DecidedBy.PENALTIES])
        else:
            winner = Side.HOME if home > away else Side.AWAY
            decided_by = DecidedBy.REGULATION
    return replace(
        match,
        status=MatchStatus.FINISHED,
        score=Score(home, away),
        winner=winner,
        decided_by=decided_by,
    )


def without_result(match: Match) -> Match:
    return replace(match, status=MatchStatus.SCHEDULED, score=None, winner=None, decided_by=None)


def fill_best_thirds_for_demo(summaries: Dict[str, GroupSummary]) -> List[str]:
    """Always return eight best-third codes.

    Uses the real ranking when it is determined; otherwise ranks whatever
    third-placed rows exist and pads with placeholder codes.
    """
    real = resolve_best_thirds(summaries)
    if real is not None:
        return real
    thirds = [s.row_at(3) for s in summaries.values() if s.row_at(3) is not None]
    codes = [row.team_code for row in rank_rows(thirds)][:BEST_THIRD_SLOTS]
    padding = BEST_THIRD_SLOTS - len(codes)
    codes.extend(f"{PLACEHOLDER_PREFIX}{n:02d}" for n in range(1, padding + 1))
    _log.debug(f"Demo best thirds padded with {padding} placeholders")
    return codes


def _demo_qualification(matches: List[Match]) -> QualificationResult:
    summaries = compute_group_standings(matches)
    result = resolve_qualifiers(summaries)
    if result.determined:
        return result
    return resolve_qualifiers(summaries, fill_best_thirds_for_demo(summaries))


def apply_scenario(matches: List[Match], scenario: str = DEFAULT_SCENARIO) -> List[Match]:
    """Advance a fixture list to a scenario.

    Group matches finish by kickoff (``group-partial``) or all at once.  In
    the knockout scenarios the bracket is filled round by round through the
    real progression engine, finishing matches that kicked off before the
    scenario time (``knockout-partial``) or all of them.
    """
    now = parse_timestamp(SCENARIOS[_check_scenario(scenario)])
    knockout_phase = scenario.startswith("knockout")

    def should_finish(match: Match) -> bool:
        if scenario == "group-partial":
            return match.stage is Stage.GROUP and match.kickoff is not None and match.kickoff <= now
        if scenario == "group-complete":
            return match.stage is Stage.GROUP
        if scenario == "knockout-partial":
            return match.stage is Stage.GROUP or (match.kickoff is not None and match.kickoff <= now)
        return True

    current = []
    for match in matches:
        if match.stage is Stage.GROUP:
            current.append(with_result(match) if should_finish(match) else without_result(match))
        else:
            current.append(replace(without_result(match), home_team=TBD, away_team=TBD))

    if not knockout_phase:
        return current

    qualification = _demo_qualification(current)
    for stage in KNOCKOUT_STAGES:
        current = resolve_bracket(current, qualification).matches
        current = [
            with_result(m)
            if m.stage is stage and is_known(m.home_team) and is_known(m.away_team) and should_finish(m)
            else m
            for m in current
        ]
    current = resolve_bracket(current, qualification).matches
    _log.info(
        f"Scenario {scenario}: "
        f"{sum(1 for m in current if m.is_finished)}/{len(current)} matches finished"
    )
    return current
