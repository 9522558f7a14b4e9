"""
Pick Pool API
FastAPI wrapper around the pickpool engine
"""

import sys
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))
from pickpool.errors import PickPoolError
from pickpool.models import BracketPrediction, MatchesSnapshot, Member, ScoringConfig
from pickpool.standings import compute_group_standings
from pickpool.qualification import resolve_qualifiers
from pickpool.bracket import resolve_bracket
from pickpool.merge import (
    combine_bracket_docs,
    flatten_picks_snapshot,
    load_local_picks,
    merge_local_bracket,
    merge_local_picks,
    save_local_bracket,
    save_local_picks,
    upsert_pick,
)
from pickpool.leaderboard import build_leaderboard, with_active_members
from pickpool.config import load_scoring_config
from pickpool.db import SqlitePredictionStore, load_leaderboard, save_leaderboard


app = FastAPI(title="Pick Pool API", version="1.0.0")


@app.get("/api/health")
def health_check():
    return {"status": "ok"}


class MatchesRequest(BaseModel):
    matches: List[Dict[str, Any]]
    lastUpdated: Optional[str] = None


class QualifiersRequest(MatchesRequest):
    bestThirdOverride: Optional[List[str]] = None


class LeaderboardRequest(QualifiersRequest):
    members: List[Dict[str, Any]] = []
    picks: List[Dict[str, Any]] = []  # per-user documents: {userId, picks, updatedAt}
    bracketGroup: List[Dict[str, Any]] = []
    bracketKnockout: List[Dict[str, Any]] = []
    scoring: Optional[Dict[str, Any]] = None
    poolId: str = "default"
    useCache: bool = True


class PickRequest(BaseModel):
    matchId: str
    homeScore: Optional[Any] = None
    awayScore: Optional[Any] = None
    advances: Optional[str] = None
    decidedBy: Optional[str] = None
    poolId: str = "default"


class BracketRequest(BaseModel):
    groups: Dict[str, Dict[str, Optional[str]]] = {}
    bestThirds: List[str] = []
    knockout: Dict[str, Dict[str, str]] = {}
    poolId: str = "default"


def _unprocessable(e: PickPoolError) -> HTTPException:
    return HTTPException(status_code=422, detail=str(e))


def _snapshot(req: MatchesRequest) -> MatchesSnapshot:
    try:
        return MatchesSnapshot.from_dict({"lastUpdated": req.lastUpdated, "matches": req.matches})
    except PickPoolError as e:
        raise _unprocessable(e)


def _qualification(req: QualifiersRequest):
    snapshot = _snapshot(req)
    summaries = compute_group_standings(snapshot.matches)
    return snapshot, summaries, resolve_qualifiers(summaries, req.bestThirdOverride)


@app.post("/api/standings")
def standings(req: MatchesRequest):
    summaries = compute_group_standings(_snapshot(req).matches)
    return {"groups": [s.to_dict() for s in summaries.values()]}


@app.post("/api/qualifiers")
def qualifiers(req: QualifiersRequest):
    _, _, result = _qualification(req)
    return result.to_dict()


@app.post("/api/bracket")
def bracket(req: QualifiersRequest):
    snapshot, _, result = _qualification(req)
    state = resolve_bracket(snapshot.matches, result)
    return {"qualification": result.to_dict(), **state.to_dict()}


@app.put("/api/picks/{user_id}")
def put_pick(user_id: str, req: PickRequest):
    """Record a pick in the member's local override cache."""
    store = SqlitePredictionStore(req.poolId)
    picks = upsert_pick(
        load_local_picks(store, user_id),
        user_id,
        req.matchId,
        home_score=req.homeScore,
        away_score=req.awayScore,
        advances=req.advances,
        decided_by=req.decidedBy,
    )
    save_local_picks(store, user_id, picks)
    return {"userId": user_id, "picks": [p.to_dict() for p in picks]}


@app.put("/api/bracket/{user_id}")
def put_bracket(user_id: str, req: BracketRequest):
    """Replace the member's cached bracket."""
    now = datetime.now(timezone.utc).isoformat()
    try:
        prediction = BracketPrediction.from_dict({
            "userId": user_id,
            "groups": req.groups,
            "bestThirds": req.bestThirds,
            "knockout": req.knockout,
            "updatedAt": now,
        })
    except PickPoolError as e:
        raise _unprocessable(e)
    save_local_bracket(SqlitePredictionStore(req.poolId), prediction)
    return prediction.to_dict()


@app.post("/api/leaderboard")
def compute_leaderboard(req: LeaderboardRequest):
    snapshot = _snapshot(req)
    try:
        members = [Member.from_dict(m) for m in req.members]
        scoring = ScoringConfig.from_dict(req.scoring) if req.scoring else load_scoring_config()
    except PickPoolError as e:
        raise _unprocessable(e)

    picks = flatten_picks_snapshot(req.picks)
    brackets = combine_bracket_docs(req.bracketGroup, req.bracketKnockout)
    active = {p.user_id for p in picks} | set(brackets)
    members = with_active_members(members, active)

    if req.useCache:
        store = SqlitePredictionStore(req.poolId)
        for member in members:
            picks = merge_local_picks(store, picks, member.id)
            merged = merge_local_bracket(store, brackets.get(member.id), member.id)
            if merged is not None:
                brackets[member.id] = merged

    try:
        board = build_leaderboard(
            members,
            snapshot.matches,
            picks,
            scoring,
            bracket_predictions=brackets,
            best_third_override=req.bestThirdOverride,
            last_updated=snapshot.last_updated or datetime.now(timezone.utc),
        )
    except PickPoolError as e:
        raise _unprocessable(e)

    result = board.to_dict()
    save_leaderboard(result, pool_id=req.poolId)
    return {**result, "droppedPicks": board.dropped_picks}


@app.get("/api/leaderboard")
def get_leaderboard(pool_id: str = Query("default")):
    snapshot = load_leaderboard(pool_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="No leaderboard has been computed for this pool")
    return snapshot
