#!/usr/bin/env python3
"""
Prediction Merging Tests
========================
"""

import json
from datetime import datetime, timedelta, timezone

from conftest import build_pick
from pickpool.merge import (
    InMemoryPredictionStore,
    bracket_key,
    combine_bracket_docs,
    dedupe_picks,
    flatten_picks_snapshot,
    has_bracket_data,
    load_local_bracket,
    load_local_picks,
    merge_bracket,
    merge_local_bracket,
    merge_local_picks,
    merge_picks,
    picks_key,
    save_local_bracket,
    save_local_picks,
    split_bracket_docs,
    upsert_pick,
)
from pickpool.models import BracketPrediction, GroupPrediction, Side, Stage

T0 = datetime(2026, 6, 20, 12, 0, tzinfo=timezone.utc)
T1 = T0 + timedelta(hours=1)


# ═══════════════════════════════════════════════════════════════
# PICKS
# ═══════════════════════════════════════════════════════════════

class TestMergePicks:
    def test_override_replaces_same_match_only(self):
        baseline = [build_pick("u1", "m1", 1, 0), build_pick("u1", "m2", 2, 2)]
        override = [build_pick("u1", "m1", 3, 3, updated_at=T1)]
        merged = merge_picks(baseline, override)
        assert len(merged) == 2
        by_match = {p.match_id: p for p in merged}
        assert (by_match["m1"].home_score, by_match["m1"].away_score) == (3, 3)
        assert by_match["m2"].home_score == 2

    def test_override_adds_new_picks(self):
        merged = merge_picks([build_pick("u1", "m1", 1, 0)], [build_pick("u1", "m9", 0, 0)])
        assert [p.match_id for p in merged] == ["m1", "m9"]

    def test_other_users_untouched(self):
        baseline = [build_pick("u1", "m1", 1, 0), build_pick("u2", "m1", 0, 1)]
        merged = merge_picks(baseline, [build_pick("u1", "m1", 5, 5)])
        assert {p.user_id: p.home_score for p in merged} == {"u1": 5, "u2": 0}

    def test_empty_override_returns_baseline(self):
        baseline = [build_pick("u1", "m1", 1, 0)]
        assert merge_picks(baseline, []) is baseline

    def test_duplicate_baseline_collapses(self):
        baseline = [
            build_pick("u1", "m1", 2, 1, created_at=T0, updated_at=T0),
            build_pick("u1", "m1", 0, 0, created_at=T0, updated_at=T1),
            build_pick("u1", "m2", 1, 1),
        ]
        merged = merge_picks(baseline, [])
        assert [(p.match_id, p.home_score) for p in merged] == [("m1", 0), ("m2", 1)]
        assert len(baseline) == 3

    def test_newer_baseline_wins(self):
        baseline = [build_pick("u1", "m1", 1, 0, created_at=T0, updated_at=T1)]
        override = [build_pick("u1", "m1", 4, 4, created_at=T0, updated_at=T0)]
        assert merge_picks(baseline, override)[0].home_score == 1

    def test_idempotent(self):
        baseline = [build_pick("u1", "m1", 1, 0), build_pick("u1", "m2", 2, 0)]
        override = [build_pick("u1", "m1", 3, 0, updated_at=T1)]
        once = merge_picks(baseline, override)
        assert merge_picks(once, override) == once

    def test_inputs_not_modified(self):
        baseline = [build_pick("u1", "m1", 1, 0)]
        override = [build_pick("u1", "m1", 2, 0)]
        merge_picks(baseline, override)
        assert baseline[0].home_score == 1 and len(baseline) == 1

    def test_dedupe_last_write_wins(self):
        picks = [
            build_pick("u1", "m1", 1, 0, created_at=T0, updated_at=T1),
            build_pick("u1", "m1", 2, 0, created_at=T0, updated_at=T0),
            build_pick("u1", "m1", 3, 0, created_at=T0, updated_at=T1),
        ]
        deduped = dedupe_picks(picks)
        assert len(deduped) == 1
        assert deduped[0].home_score == 3


class TestUpsertPick:
    def test_insert(self):
        picks = upsert_pick([], "u1", "m1", home_score="2", away_score=1, now=T0)
        assert len(picks) == 1
        assert picks[0].id == "pick-u1-m1"
        assert (picks[0].home_score, picks[0].away_score) == (2, 1)
        assert picks[0].created_at == T0

    def test_update_keeps_created_at(self):
        picks = upsert_pick([], "u1", "m1", home_score=1, away_score=1, now=T0)
        picks = upsert_pick(picks, "u1", "m1", home_score=1, away_score=1, advances="AWAY", now=T1)
        assert len(picks) == 1
        assert picks[0].advances is Side.AWAY
        assert picks[0].created_at == T0
        assert picks[0].updated_at == T1

    def test_bad_score_is_missing(self):
        picks = upsert_pick([], "u1", "m1", home_score="two", away_score=1.5, now=T0)
        assert picks[0].home_score is None and picks[0].away_score is None


class TestFlattenSnapshot:
    def test_list_and_map_documents(self):
        docs = [
            {"userId": "u1", "updatedAt": "2026-06-20T12:00:00Z", "picks": [
                {"matchId": "m1", "homeScore": 1, "awayScore": 0},
                {"homeScore": 9, "awayScore": 9},  # no match id
            ]},
            {"userId": "u2", "updatedAt": "2026-06-20T12:00:00Z", "picks": {
                "m1": {"homeScore": "2", "awayScore": "2", "advances": "HOME"},
            }},
        ]
        picks = flatten_picks_snapshot(docs)
        assert sorted(p.key for p in picks) == [("u1", "m1"), ("u2", "m1")]
        u2 = next(p for p in picks if p.user_id == "u2")
        assert u2.home_score == 2 and u2.advances is Side.HOME
        assert u2.updated_at == T0

    def test_duplicates_collapse(self):
        docs = [{"userId": "u1", "picks": [
            {"matchId": "m1", "homeScore": 1, "awayScore": 0, "updatedAt": "2026-06-20T12:00:00Z"},
            {"matchId": "m1", "homeScore": 2, "awayScore": 0, "updatedAt": "2026-06-20T13:00:00Z"},
        ]}]
        picks = flatten_picks_snapshot(docs)
        assert len(picks) == 1 and picks[0].home_score == 2

    def test_garbage_documents_skipped(self):
        assert flatten_picks_snapshot([None, "x", {"userId": "u1", "picks": 5}]) == []


class TestLocalPickCache:
    def test_round_trip(self):
        store = InMemoryPredictionStore()
        save_local_picks(store, "u1", [build_pick("u1", "m1", 2, 1)])
        assert picks_key("u1") in store.keys()
        loaded = load_local_picks(store, "u1")
        assert [(p.match_id, p.home_score, p.away_score) for p in loaded] == [("m1", 2, 1)]

    def test_corrupt_cache_reads_as_absent(self):
        store = InMemoryPredictionStore({picks_key("u1"): "{not json"})
        baseline = [build_pick("u1", "m1", 1, 0)]
        assert load_local_picks(store, "u1") == []
        assert merge_local_picks(store, baseline, "u1") is baseline

    def test_merge_local_override(self):
        store = InMemoryPredictionStore()
        save_local_picks(store, "u1", [build_pick("u1", "m1", 4, 4, updated_at=T1)])
        merged = merge_local_picks(store, [build_pick("u1", "m1", 1, 0)], "u1")
        assert merged[0].home_score == 4


# ═══════════════════════════════════════════════════════════════
# BRACKETS
# ═══════════════════════════════════════════════════════════════

def _bracket(user_id="u1", **kw):
    return BracketPrediction(user_id=user_id, updated_at=T0, created_at=T0, **kw)


class TestMergeBracket:
    def test_override_with_data_replaces_whole_record(self):
        baseline = _bracket(groups={"A": GroupPrediction("A1", "A2")}, best_thirds=["L3"])
        override = _bracket(knockout={(Stage.R32, "R32-01"): Side.AWAY})
        merged = merge_bracket(baseline, override)
        assert merged is override
        assert merged.groups == {}

    def test_empty_override_keeps_baseline(self):
        baseline = _bracket(best_thirds=["L3"])
        assert merge_bracket(baseline, _bracket()) is baseline
        assert merge_bracket(baseline, None) is baseline

    def test_has_bracket_data(self):
        assert not has_bracket_data(None)
        assert not has_bracket_data(_bracket(groups={"A": GroupPrediction()}))
        assert has_bracket_data(_bracket(groups={"A": GroupPrediction(second="A2")}))
        assert has_bracket_data(_bracket(best_thirds=["L3"]))

    def test_local_bracket_cache(self):
        store = InMemoryPredictionStore()
        cached = _bracket(best_thirds=["K3"], knockout={(Stage.FINAL, "F"): Side.HOME})
        save_local_bracket(store, cached)
        loaded = load_local_bracket(store, "u1")
        assert loaded.best_thirds == ["K3"]
        assert loaded.knockout_pick(Stage.FINAL, "F") is Side.HOME
        assert merge_local_bracket(store, _bracket(best_thirds=["L3"]), "u1").best_thirds == ["K3"]

    def test_corrupt_bracket_cache(self):
        store = InMemoryPredictionStore({bracket_key("u1"): json.dumps(["not", "a", "dict"])})
        baseline = _bracket(best_thirds=["L3"])
        assert merge_local_bracket(store, baseline, "u1") is baseline


class TestBracketDocuments:
    def test_combine_group_and_knockout(self):
        group_docs = [{
            "userId": "u1",
            "groups": {"A": {"first": "A1", "second": "A2"}},
            "bestThirds": ["l3", "k3", "L3", ""],
            "updatedAt": "2026-06-20T12:00:00Z",
        }]
        knockout_docs = [
            {"userId": "u1", "knockout": {"R32": {"R32-01": "HOME"}, "Bogus": {"x": "HOME"}},
             "updatedAt": "2026-06-20T13:00:00Z"},
            {"userId": "u2", "knockout": {"Final": {"F": "AWAY"}}},
        ]
        combined = combine_bracket_docs(group_docs, knockout_docs)
        assert sorted(combined) == ["u1", "u2"]
        u1 = combined["u1"]
        assert u1.group_pick("A").first == "A1"
        assert u1.best_thirds == ["L3", "K3"]
        assert u1.knockout == {(Stage.R32, "R32-01"): Side.HOME}
        assert u1.updated_at == T1
        assert combined["u2"].knockout_pick(Stage.FINAL, "F") is Side.AWAY

    def test_split_inverts_combine(self):
        prediction = _bracket(
            groups={"B": GroupPrediction("B2", "B1")},
            best_thirds=["L3"],
            knockout={(Stage.SF, "SF-01"): Side.AWAY},
        )
        group_doc, knockout_doc = split_bracket_docs(prediction)
        again = combine_bracket_docs([group_doc], [knockout_doc])["u1"]
        assert again.groups == prediction.groups
        assert again.best_thirds == prediction.best_thirds
        assert again.knockout == prediction.knockout
