#!/usr/bin/env python3
"""
Data Model Parsing Tests
========================
"""

from datetime import datetime, timezone

import pytest

from pickpool.errors import SnapshotError
from pickpool.models import (
    TBD,
    BracketPrediction,
    DecidedBy,
    KnownTeam,
    Match,
    MatchesSnapshot,
    MatchStatus,
    Member,
    Pick,
    ScoringConfig,
    Side,
    Stage,
    format_timestamp,
    is_known,
    normalize_team_codes,
    parse_decided_by,
    parse_score,
    parse_stage,
    parse_status,
    parse_timestamp,
    team_from_dict,
)


# ═══════════════════════════════════════════════════════════════
# SCALARS
# ═══════════════════════════════════════════════════════════════

class TestScalars:
    def test_timestamp_with_z(self):
        parsed = parse_timestamp("2026-06-11T16:00:00Z")
        assert parsed == datetime(2026, 6, 11, 16, 0, tzinfo=timezone.utc)
        assert format_timestamp(parsed) == "2026-06-11T16:00:00Z"

    def test_naive_timestamp_is_utc(self):
        assert parse_timestamp("2026-06-11T16:00:00").tzinfo is not None

    @pytest.mark.parametrize("value", [None, "", "yesterday", 12])
    def test_bad_timestamp_is_missing(self, value):
        assert parse_timestamp(value) is None

    @pytest.mark.parametrize("value,expected", [
        (2, 2),
        ("3", 3),
        (" 1 ", 1),
        (2.0, 2),
        (1.5, None),
        (float("nan"), None),
        (True, None),
        ("", None),
        ("two", None),
        (None, None),
    ])
    def test_parse_score(self, value, expected):
        assert parse_score(value) == expected

    def test_enum_parsing(self):
        assert parse_stage("final") is Stage.FINAL
        assert parse_stage("Round of 32") is None
        assert parse_status("PAUSED") is MatchStatus.IN_PLAY
        assert parse_status("TIMED") is MatchStatus.SCHEDULED
        assert parse_status("POSTPONED") is MatchStatus.SCHEDULED
        assert parse_decided_by("PENALTY_SHOOTOUT") is DecidedBy.PENALTIES
        assert parse_decided_by("ET") is DecidedBy.EXTRA_TIME

    def test_normalize_team_codes(self):
        assert normalize_team_codes([" mex", "MEX", None, "", "rsa"]) == ["MEX", "RSA"]
        assert normalize_team_codes(None) == []


# ═══════════════════════════════════════════════════════════════
# RECORDS
# ═══════════════════════════════════════════════════════════════

class TestTeams:
    def test_tbd_variants(self):
        assert team_from_dict({"code": "TBD", "name": "TBD"}) is TBD
        assert team_from_dict({"code": ""}) is TBD
        assert team_from_dict(None) is TBD
        assert not is_known(TBD)

    def test_known_team_name_defaults_to_code(self):
        assert team_from_dict({"code": "ARG"}) == KnownTeam("ARG", "ARG")


class TestMatches:
    def test_group_match_never_has_winner(self):
        match = Match.from_dict({
            "id": "m1", "stage": "Group", "group": "A", "status": "FINISHED",
            "homeTeam": {"code": "MEX"}, "awayTeam": {"code": "RSA"},
            "score": {"home": 2, "away": 0}, "winner": "HOME", "decidedBy": "REG",
        })
        assert match.winner is None and match.decided_by is None
        assert match.score.home == 2

    def test_knockout_keeps_decision(self):
        match = Match.from_dict({
            "id": "k1", "stage": "R16", "status": "FINISHED",
            "homeTeam": {"code": "ARG"}, "awayTeam": {"code": "FRA"},
            "score": {"home": 1, "away": 1}, "winner": "AWAY", "decidedBy": "PENS",
        })
        assert match.winner is Side.AWAY
        assert match.decided_by is DecidedBy.PENALTIES

    def test_partial_score_is_no_score(self):
        match = Match.from_dict({"id": "m", "stage": "Group", "score": {"home": 1, "away": None}})
        assert match.score is None
        assert match.home_team is TBD

    @pytest.mark.parametrize("record", [
        {"stage": "Group"},
        {"id": "m", "stage": "Quarters"},
        "m1",
    ])
    def test_unusable_match_raises(self, record):
        with pytest.raises(SnapshotError):
            Match.from_dict(record)

    def test_snapshot_needs_matches_list(self):
        with pytest.raises(SnapshotError):
            MatchesSnapshot.from_dict({"lastUpdated": "2026-06-11T00:00:00Z"})


class TestPredictions:
    def test_pick_fills_ids_from_context(self):
        pick = Pick.from_dict({"homeScore": "1", "awayScore": 0}, user_id="u1", match_id="m1")
        assert pick.id == "pick-u1-m1"
        assert pick.key == ("u1", "m1")
        assert pick.has_scores

    def test_pick_without_owner_raises(self):
        with pytest.raises(SnapshotError):
            Pick.from_dict({"matchId": "m1"})

    def test_bracket_caps_best_thirds(self):
        codes = [f"T{i}" for i in range(10)]
        prediction = BracketPrediction.from_dict({"userId": "u", "bestThirds": codes})
        assert prediction.best_thirds == codes[:8]

    def test_knockout_wire_is_nested(self):
        prediction = BracketPrediction(user_id="u", knockout={
            (Stage.FINAL, "F"): Side.HOME,
            (Stage.R32, "R32-02"): Side.AWAY,
        })
        assert prediction.knockout_to_dict() == {"R32": {"R32-02": "AWAY"}, "Final": {"F": "HOME"}}


class TestMembersAndScoring:
    def test_member_falls_back_to_email(self):
        member = Member.from_dict({"email": " Ana@Example.com "})
        assert member.id == "ana@example.com"
        assert member.name == "ana@example.com"

    def test_member_without_identity_raises(self):
        with pytest.raises(SnapshotError):
            Member.from_dict({"name": "Nobody"})

    def test_group_scoring_has_no_knockout_bonus(self):
        config = ScoringConfig.from_dict({
            "group": {"exactScoreBoth": 3, "exactScoreOne": 1, "result": 2, "knockoutWinner": 9},
            "knockout": {"R32": {"exactScoreBoth": 3, "exactScoreOne": 1, "result": 2, "knockoutWinner": 2}},
        })
        assert config.for_stage(Stage.GROUP).knockout_winner is None
        assert config.for_stage(Stage.R32).knockout_winner == 2
        assert config.bracket is None
