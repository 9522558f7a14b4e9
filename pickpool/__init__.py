"""
World Cup Prediction Pool Engine
"""

from .errors import PickPoolError, ConfigurationMissing, SnapshotError
from .models import (
    Stage,
    STAGE_ORDER,
    KNOCKOUT_STAGES,
    MatchStatus,
    Side,
    Outcome,
    DecidedBy,
    KnownTeam,
    TBD,
    Team,
    is_known,
    Score,
    Match,
    MatchesSnapshot,
    Pick,
    GroupPrediction,
    BracketPrediction,
    StageScoring,
    BracketScoring,
    ScoringConfig,
    Member,
    normalize_team_codes,
)
from .standings import GroupStandingRow, GroupSummary, compute_group_standings
from .qualification import QualificationResult, resolve_best_thirds, resolve_qualifiers
from .bracket import BracketState, resolve_bracket
from .scoring import PickScore, BracketScore, score_pick, score_bracket_prediction, is_pick_complete
from .merge import (
    PredictionStore,
    InMemoryPredictionStore,
    merge_picks,
    merge_bracket,
    merge_local_picks,
    merge_local_bracket,
    flatten_picks_snapshot,
    combine_bracket_docs,
    upsert_pick,
)
from .leaderboard import Leaderboard, LeaderboardEntry, build_leaderboard, with_active_members

__all__ = [
    "PickPoolError", "ConfigurationMissing", "SnapshotError",
    "Stage", "STAGE_ORDER", "KNOCKOUT_STAGES", "MatchStatus", "Side", "Outcome", "DecidedBy",
    "KnownTeam", "TBD", "Team", "is_known",
    "Score", "Match", "MatchesSnapshot", "Pick",
    "GroupPrediction", "BracketPrediction",
    "StageScoring", "BracketScoring", "ScoringConfig", "Member",
    "normalize_team_codes",
    "GroupStandingRow", "GroupSummary", "compute_group_standings",
    "QualificationResult", "resolve_best_thirds", "resolve_qualifiers",
    "BracketState", "resolve_bracket",
    "PickScore", "BracketScore", "score_pick", "score_bracket_prediction", "is_pick_complete",
    "PredictionStore", "InMemoryPredictionStore",
    "merge_picks", "merge_bracket", "merge_local_picks", "merge_local_bracket",
    "flatten_picks_snapshot", "combine_bracket_docs", "upsert_pick",
    "Leaderboard", "LeaderboardEntry", "build_leaderboard", "with_active_members",
]
