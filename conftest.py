"""
Pytest configuration and fixtures for the pick pool tests

The standard tournament fixture has twelve groups A-L, teams ``<g>1``..``<g>4``.
Every group game ends 1-0 to the lower-numbered team except ``<g>3`` v
``<g>4``, which ends k-0 where k is the group's position (A=1 .. L=12).  So
in every group 1 > 2 > 3 > 4 on points, and the third-placed teams differ
only on goals: the best eight thirds are L3, K3, ..., E3.
"""

import sys
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from pickpool.models import (
    DecidedBy,
    KnownTeam,
    Match,
    MatchStatus,
    Member,
    Pick,
    Score,
    Side,
    Stage,
    TBD,
)
from pickpool.config import clear_config_cache, load_scoring_config

DATA_DIR = Path(__file__).parent / "data"

GROUP_IDS = "ABCDEFGHIJKL"
ROUND_ROBIN = [(0, 1), (2, 3), (0, 2), (1, 3), (0, 3), (1, 2)]
KNOCKOUT_LAYOUT = [
    (Stage.R32, 16),
    (Stage.R16, 8),
    (Stage.QF, 4),
    (Stage.SF, 2),
    (Stage.THIRD, 1),
    (Stage.FINAL, 1),
]
BASE_KICKOFF = datetime(2026, 6, 11, 16, 0, tzinfo=timezone.utc)
KNOCKOUT_KICKOFF = datetime(2026, 6, 28, 16, 0, tzinfo=timezone.utc)


def team(code: str) -> KnownTeam:
    return KnownTeam(code=code, name=f"Team {code}")


def build_match(
    match_id,
    stage=Stage.GROUP,
    home="HOM",
    away="AWY",
    score=None,
    status=None,
    group=None,
    kickoff=None,
    winner=None,
    decided_by=None,
):
    """Match with sensible defaults; a score implies FINISHED."""
    if status is None:
        status = MatchStatus.FINISHED if score is not None else MatchStatus.SCHEDULED
    return Match(
        id=match_id,
        stage=stage,
        kickoff=kickoff or BASE_KICKOFF,
        status=status,
        home_team=team(home) if isinstance(home, str) else home,
        away_team=team(away) if isinstance(away, str) else away,
        group=group,
        score=Score(*score) if score is not None else None,
        winner=winner,
        decided_by=decided_by,
    )


def build_pick(user_id, match_id, home=None, away=None, advances=None,
               created_at=None, updated_at=None, **kw):
    created_at = created_at or BASE_KICKOFF - timedelta(days=1)
    return Pick(
        id=f"pick-{user_id}-{match_id}",
        match_id=match_id,
        user_id=user_id,
        home_score=home,
        away_score=away,
        advances=advances,
        created_at=created_at,
        updated_at=updated_at or created_at,
        **kw,
    )


def build_group_matches(groups=GROUP_IDS, finished=True):
    matches = []
    n = 0
    for k, gid in enumerate(groups, 1):
        for i, j in ROUND_ROBIN:
            goals = k if (i, j) == (2, 3) else 1
            matches.append(build_match(
                f"G{gid}-{i + 1}{j + 1}",
                home=f"{gid}{i + 1}",
                away=f"{gid}{j + 1}",
                score=(goals, 0) if finished else None,
                group=gid,
                kickoff=BASE_KICKOFF + timedelta(hours=n),
            ))
            n += 1
    return matches


def build_knockout_fixtures():
    matches = []
    n = 0
    for stage, count in KNOCKOUT_LAYOUT:
        for slot in range(1, count + 1):
            matches.append(build_match(
                f"{stage.value}-{slot:02d}",
                stage=stage,
                home=TBD,
                away=TBD,
                kickoff=KNOCKOUT_KICKOFF + timedelta(hours=n),
            ))
            n += 1
    return matches


def finish(match, home_goals, away_goals, winner=None, decided_by=None):
    """Finish a knockout match; the winner defaults to the side that scored more."""
    if winner is None and home_goals != away_goals:
        winner = Side.HOME if home_goals > away_goals else Side.AWAY
    if decided_by is None and winner is not None:
        decided_by = DecidedBy.REGULATION if home_goals != away_goals else DecidedBy.PENALTIES
    return replace(
        match,
        status=MatchStatus.FINISHED,
        score=Score(home_goals, away_goals),
        winner=winner,
        decided_by=decided_by,
    )


@pytest.fixture(autouse=True)
def _fresh_config_cache():
    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture
def scoring_config():
    """The shipped scoring table."""
    return load_scoring_config(DATA_DIR / "scoring.json")


@pytest.fixture
def group_matches():
    return build_group_matches()


@pytest.fixture
def knockout_fixtures():
    return build_knockout_fixtures()


@pytest.fixture
def tournament(group_matches, knockout_fixtures):
    """Finished group stage plus an untouched TBD knockout bracket."""
    return group_matches + knockout_fixtures


@pytest.fixture
def expected_best_thirds():
    return ["L3", "K3", "J3", "I3", "H3", "G3", "F3", "E3"]


@pytest.fixture
def members():
    return [
        Member(id="u-alice", name="Alice"),
        Member(id="u-bob", name="Bob"),
        Member(id="u-cara", name="Cara"),
    ]
