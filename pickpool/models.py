"""
Pick Pool Data Model
====================

Input records consumed by the engine: teams, matches, picks, bracket
predictions, scoring tables and members.  Every record is parsed from an
already-fetched snapshot dict via ``from_dict`` and rendered back to the wire
shape with ``to_dict``.  Derived records (standings rows, leaderboard entries)
live next to the component that computes them.

Wire conventions:
  - camelCase keys (``matchId``, ``kickoffUtc``, ``exactScoreBoth``)
  - timestamps are ISO-8601 strings, ``Z`` suffix accepted
  - an unresolved bracket slot is the team ``{"code": "TBD", "name": "TBD"}``
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from pickpool.errors import ConfigurationMissing, SnapshotError

_log = logging.getLogger("pickpool.models")

TBD_CODE = "TBD"
BEST_THIRD_SLOTS = 8


# ═══════════════════════════════════════════════════════════════
# ENUMS
# ═══════════════════════════════════════════════════════════════

class Stage(Enum):
    """Tournament phases, in play order."""
    GROUP = "Group"
    R32 = "R32"
    R16 = "R16"
    QF = "QF"
    SF = "SF"
    THIRD = "Third"
    FINAL = "Final"


STAGE_ORDER: List[Stage] = [
    Stage.GROUP, Stage.R32, Stage.R16, Stage.QF, Stage.SF, Stage.THIRD, Stage.FINAL,
]
KNOCKOUT_STAGES: List[Stage] = STAGE_ORDER[1:]


class MatchStatus(Enum):
    SCHEDULED = "SCHEDULED"
    IN_PLAY = "IN_PLAY"
    FINISHED = "FINISHED"


class Side(Enum):
    HOME = "HOME"
    AWAY = "AWAY"


class Outcome(Enum):
    """Result from the home side's point of view."""
    WIN = "WIN"
    DRAW = "DRAW"
    LOSS = "LOSS"


class DecidedBy(Enum):
    REGULATION = "REG"
    EXTRA_TIME = "ET"
    PENALTIES = "PENS"


_STATUS_ALIASES = {
    "PAUSED": MatchStatus.IN_PLAY,
    "LIVE": MatchStatus.IN_PLAY,
    "TIMED": MatchStatus.SCHEDULED,
}

_DECIDED_BY_ALIASES = {
    "REGULATION": DecidedBy.REGULATION,
    "REGULAR": DecidedBy.REGULATION,
    "EXTRA_TIME": DecidedBy.EXTRA_TIME,
    "PENALTIES": DecidedBy.PENALTIES,
    "PENALTY_SHOOTOUT": DecidedBy.PENALTIES,
}


def _parse_enum(enum_cls, value: Any, aliases: Optional[dict] = None):
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    for member in enum_cls:
        if member.value == text or member.value.upper() == text.upper():
            return member
    if aliases:
        return aliases.get(text.upper())
    return None


def parse_stage(value: Any) -> Optional[Stage]:
    return _parse_enum(Stage, value)


def parse_status(value: Any) -> MatchStatus:
    """Unknown statuses are treated as not yet started."""
    return _parse_enum(MatchStatus, value, _STATUS_ALIASES) or MatchStatus.SCHEDULED


def parse_side(value: Any) -> Optional[Side]:
    return _parse_enum(Side, value, {"HOME_TEAM": Side.HOME, "AWAY_TEAM": Side.AWAY})


def parse_outcome(value: Any) -> Optional[Outcome]:
    return _parse_enum(Outcome, value)


def parse_decided_by(value: Any) -> Optional[DecidedBy]:
    return _parse_enum(DecidedBy, value, _DECIDED_BY_ALIASES)


# ═══════════════════════════════════════════════════════════════
# SCALAR PARSING
# ═══════════════════════════════════════════════════════════════

def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp.  Naive values are taken as UTC.

    Returns None for anything unparseable so callers can treat the value
    as missing.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text[-1] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_score(value: Any) -> Optional[int]:
    """Parse a predicted or actual goal count.

    Accepts ints, integral floats and numeric strings.  Booleans, NaN,
    fractions and blanks come back as None (a missing score).
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return int(value)
        return None
    if isinstance(value, str) and value.strip():
        try:
            number = float(value)
        except ValueError:
            return None
        return parse_score(number)
    return None


def _points(value: Any, default: float = 0) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def normalize_team_codes(codes: Optional[List[Any]]) -> List[str]:
    """Strip, upper-case, drop blanks and de-duplicate (first wins)."""
    if not codes:
        return []
    seen: List[str] = []
    for code in codes:
        text = str(code if code is not None else "").strip().upper()
        if text and text not in seen:
            seen.append(text)
    return seen


# ═══════════════════════════════════════════════════════════════
# TEAMS
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class KnownTeam:
    """A resolved participant."""
    code: str
    name: str

    def to_dict(self) -> dict:
        return {"code": self.code, "name": self.name}


class Unresolved:
    """A bracket slot whose participant is not known yet.

    There is exactly one instance, ``TBD``.  Ask ``is_known(team)`` rather
    than comparing codes.
    """
    _instance: Optional["Unresolved"] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "TBD"

    def to_dict(self) -> dict:
        return {"code": TBD_CODE, "name": TBD_CODE}


TBD = Unresolved()

Team = Union[KnownTeam, Unresolved]


def is_known(team: Team) -> bool:
    return isinstance(team, KnownTeam)


def team_from_dict(data: Any) -> Team:
    if not isinstance(data, dict):
        return TBD
    code = str(data.get("code") or "").strip()
    if not code or code.upper() == TBD_CODE:
        return TBD
    name = str(data.get("name") or "").strip() or code
    return KnownTeam(code=code, name=name)


# ═══════════════════════════════════════════════════════════════
# MATCHES
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Score:
    home: int
    away: int

    def to_dict(self) -> dict:
        return {"home": self.home, "away": self.away}


def _score_from_dict(data: Any) -> Optional[Score]:
    if not isinstance(data, dict):
        return None
    home = parse_score(data.get("home"))
    away = parse_score(data.get("away"))
    if home is None or away is None:
        return None
    return Score(home=home, away=away)


@dataclass(frozen=True)
class Match:
    """One fixture as delivered by the results feed."""
    id: str
    stage: Stage
    kickoff: Optional[datetime]
    status: MatchStatus
    home_team: Team
    away_team: Team
    group: Optional[str] = None
    score: Optional[Score] = None
    winner: Optional[Side] = None
    decided_by: Optional[DecidedBy] = None

    @property
    def is_finished(self) -> bool:
        return self.status is MatchStatus.FINISHED

    @property
    def has_result(self) -> bool:
        return self.score is not None or self.winner is not None or self.decided_by is not None

    def team(self, side: Side) -> Team:
        return self.home_team if side is Side.HOME else self.away_team

    def to_dict(self) -> dict:
        d: Dict[str, Any] = {
            "id": self.id,
            "stage": self.stage.value,
            "kickoffUtc": format_timestamp(self.kickoff),
            "status": self.status.value,
            "homeTeam": self.home_team.to_dict(),
            "awayTeam": self.away_team.to_dict(),
        }
        if self.group is not None:
            d["group"] = self.group
        if self.score is not None:
            d["score"] = self.score.to_dict()
        if self.winner is not None:
            d["winner"] = self.winner.value
        if self.decided_by is not None:
            d["decidedBy"] = self.decided_by.value
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "Match":
        if not isinstance(data, dict):
            raise SnapshotError("Match record must be an object")
        match_id = str(data.get("id") or "").strip()
        if not match_id:
            raise SnapshotError("Match record has no id")
        stage = parse_stage(data.get("stage"))
        if stage is None:
            raise SnapshotError(f"Match {match_id} has unknown stage {data.get('stage')!r}")

        winner = parse_side(data.get("winner"))
        decided_by = parse_decided_by(data.get("decidedBy"))
        if stage is Stage.GROUP:
            # group games are never "won" in the knockout sense
            winner = None
            decided_by = None

        group = data.get("group")
        return cls(
            id=match_id,
            stage=stage,
            kickoff=parse_timestamp(data.get("kickoffUtc", data.get("kickoffTime"))),
            status=parse_status(data.get("status")),
            home_team=team_from_dict(data.get("homeTeam")),
            away_team=team_from_dict(data.get("awayTeam")),
            group=str(group).strip() if group else None,
            score=_score_from_dict(data.get("score")),
            winner=winner,
            decided_by=decided_by,
        )


@dataclass
class MatchesSnapshot:
    last_updated: Optional[datetime]
    matches: List[Match] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "lastUpdated": format_timestamp(self.last_updated),
            "matches": [m.to_dict() for m in self.matches],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MatchesSnapshot":
        if not isinstance(data, dict) or not isinstance(data.get("matches"), list):
            raise SnapshotError("Matches snapshot must be an object with a 'matches' list")
        return cls(
            last_updated=parse_timestamp(data.get("lastUpdated")),
            matches=[Match.from_dict(m) for m in data["matches"]],
        )


# ═══════════════════════════════════════════════════════════════
# PICKS
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Pick:
    """A member's score prediction for one match.

    ``outcome`` and ``winner`` are legacy fields kept for old documents;
    scoring derives the outcome from the predicted scores.
    """
    id: str
    match_id: str
    user_id: str
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    advances: Optional[Side] = None
    outcome: Optional[Outcome] = None
    winner: Optional[Side] = None
    decided_by: Optional[DecidedBy] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def key(self) -> Tuple[str, str]:
        return (self.user_id, self.match_id)

    @property
    def has_scores(self) -> bool:
        return self.home_score is not None and self.away_score is not None

    def to_dict(self) -> dict:
        d: Dict[str, Any] = {
            "id": self.id,
            "matchId": self.match_id,
            "userId": self.user_id,
        }
        if self.home_score is not None:
            d["homeScore"] = self.home_score
        if self.away_score is not None:
            d["awayScore"] = self.away_score
        if self.advances is not None:
            d["advances"] = self.advances.value
        if self.outcome is not None:
            d["outcome"] = self.outcome.value
        if self.winner is not None:
            d["winner"] = self.winner.value
        if self.decided_by is not None:
            d["decidedBy"] = self.decided_by.value
        d["createdAt"] = format_timestamp(self.created_at)
        d["updatedAt"] = format_timestamp(self.updated_at)
        return d

    @classmethod
    def from_dict(
        cls,
        data: dict,
        user_id: Optional[str] = None,
        match_id: Optional[str] = None,
        fallback_timestamp: Optional[datetime] = None,
    ) -> "Pick":
        """Build a pick from a stored record.

        ``user_id`` / ``match_id`` fill in for records that only carry them
        implicitly (picks nested under a user document or keyed by match).
        """
        if not isinstance(data, dict):
            raise SnapshotError("Pick record must be an object")
        pick_match = str(data.get("matchId") or match_id or "").strip()
        pick_user = str(data.get("userId") or user_id or "").strip()
        if not pick_match or not pick_user:
            raise SnapshotError("Pick record needs both matchId and userId")
        pick_id = str(data.get("id") or "").strip() or f"pick-{pick_user}-{pick_match}"
        return cls(
            id=pick_id,
            match_id=pick_match,
            user_id=pick_user,
            home_score=parse_score(data.get("homeScore")),
            away_score=parse_score(data.get("awayScore")),
            advances=parse_side(data.get("advances")),
            outcome=parse_outcome(data.get("outcome")),
            winner=parse_side(data.get("winner")),
            decided_by=parse_decided_by(data.get("decidedBy")),
            created_at=parse_timestamp(data.get("createdAt")) or fallback_timestamp,
            updated_at=parse_timestamp(data.get("updatedAt")) or fallback_timestamp,
        )


# ═══════════════════════════════════════════════════════════════
# BRACKET PREDICTIONS
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class GroupPrediction:
    first: Optional[str] = None
    second: Optional[str] = None

    def to_dict(self) -> dict:
        d = {}
        if self.first:
            d["first"] = self.first
        if self.second:
            d["second"] = self.second
        return d


KnockoutKey = Tuple[Stage, str]


@dataclass
class BracketPrediction:
    """A member's whole-tournament bracket.

    ``knockout`` is a sparse map keyed by ``(stage, match_id)``; a missing
    key means "no prediction", never "TBD".
    """
    user_id: str
    groups: Dict[str, GroupPrediction] = field(default_factory=dict)
    best_thirds: List[str] = field(default_factory=list)
    knockout: Dict[KnockoutKey, Side] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def id(self) -> str:
        return f"bracket-{self.user_id}"

    def group_pick(self, group_id: str) -> GroupPrediction:
        return self.groups.get(group_id, GroupPrediction())

    def knockout_pick(self, stage: Stage, match_id: str) -> Optional[Side]:
        return self.knockout.get((stage, match_id))

    def knockout_to_dict(self) -> dict:
        nested: Dict[str, Dict[str, str]] = {}
        for (stage, match_id), side in sorted(
            self.knockout.items(), key=lambda kv: (STAGE_ORDER.index(kv[0][0]), kv[0][1])
        ):
            nested.setdefault(stage.value, {})[match_id] = side.value
        return nested

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "groups": {gid: gp.to_dict() for gid, gp in sorted(self.groups.items())},
            "bestThirds": list(self.best_thirds),
            "knockout": self.knockout_to_dict(),
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict, user_id: Optional[str] = None) -> "BracketPrediction":
        if not isinstance(data, dict):
            raise SnapshotError("Bracket prediction must be an object")
        owner = str(data.get("userId") or user_id or "").strip()
        if not owner:
            raise SnapshotError("Bracket prediction has no userId")
        updated_at = parse_timestamp(data.get("updatedAt"))
        return cls(
            user_id=owner,
            groups=groups_from_dict(data.get("groups")),
            best_thirds=best_thirds_from_list(data.get("bestThirds")),
            knockout=knockout_from_dict(data.get("knockout")),
            created_at=parse_timestamp(data.get("createdAt")) or updated_at,
            updated_at=updated_at,
        )


def groups_from_dict(data: Any) -> Dict[str, GroupPrediction]:
    groups: Dict[str, GroupPrediction] = {}
    if not isinstance(data, dict):
        return groups
    for group_id, value in data.items():
        if not isinstance(value, dict):
            continue
        first = str(value.get("first") or "").strip() or None
        second = str(value.get("second") or "").strip() or None
        groups[str(group_id)] = GroupPrediction(first=first, second=second)
    return groups


def best_thirds_from_list(data: Any) -> List[str]:
    if not isinstance(data, list):
        return []
    return normalize_team_codes(data)[:BEST_THIRD_SLOTS]


def knockout_from_dict(data: Any) -> Dict[KnockoutKey, Side]:
    """Flatten ``{stage: {match_id: side}}`` into ``{(stage, match_id): side}``."""
    flat: Dict[KnockoutKey, Side] = {}
    if not isinstance(data, dict):
        return flat
    for stage_key, picks in data.items():
        stage = parse_stage(stage_key)
        if stage is None or stage is Stage.GROUP or not isinstance(picks, dict):
            continue
        for match_id, side_value in picks.items():
            side = parse_side(side_value)
            if side is not None:
                flat[(stage, str(match_id))] = side
    return flat


# ═══════════════════════════════════════════════════════════════
# SCORING TABLE
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class StageScoring:
    exact_score_both: float
    exact_score_one: float
    result: float
    knockout_winner: Optional[float] = None

    def to_dict(self) -> dict:
        d = {
            "exactScoreBoth": self.exact_score_both,
            "exactScoreOne": self.exact_score_one,
            "result": self.result,
        }
        if self.knockout_winner is not None:
            d["knockoutWinner"] = self.knockout_winner
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "StageScoring":
        kw = data.get("knockoutWinner")
        return cls(
            exact_score_both=_points(data.get("exactScoreBoth")),
            exact_score_one=_points(data.get("exactScoreOne")),
            result=_points(data.get("result")),
            knockout_winner=_points(kw, default=None) if kw is not None else None,
        )


@dataclass(frozen=True)
class BracketScoring:
    """Points for the whole-tournament bracket game."""
    group_qualifiers: float = 0
    third_place_qualifiers: Optional[float] = None
    knockout: Dict[Stage, float] = field(default_factory=dict)

    @property
    def best_third_points(self) -> float:
        if self.third_place_qualifiers is None:
            return self.group_qualifiers
        return self.third_place_qualifiers

    def to_dict(self) -> dict:
        d: Dict[str, Any] = {
            "groupQualifiers": self.group_qualifiers,
            "knockout": {stage.value: pts for stage, pts in self.knockout.items()},
        }
        if self.third_place_qualifiers is not None:
            d["thirdPlaceQualifiers"] = self.third_place_qualifiers
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "BracketScoring":
        knockout: Dict[Stage, float] = {}
        for stage_key, pts in (data.get("knockout") or {}).items():
            stage = parse_stage(stage_key)
            if stage is not None and stage is not Stage.GROUP:
                knockout[stage] = _points(pts)
        third = data.get("thirdPlaceQualifiers")
        return cls(
            group_qualifiers=_points(data.get("groupQualifiers")),
            third_place_qualifiers=_points(third, default=None) if third is not None else None,
            knockout=knockout,
        )


@dataclass(frozen=True)
class ScoringConfig:
    stages: Dict[Stage, StageScoring] = field(default_factory=dict)
    bracket: Optional[BracketScoring] = None

    def for_stage(self, stage: Stage) -> StageScoring:
        config = self.stages.get(stage)
        if config is None:
            raise ConfigurationMissing(stage.value)
        return config

    def to_dict(self) -> dict:
        d: Dict[str, Any] = {"knockout": {}}
        for stage, config in self.stages.items():
            if stage is Stage.GROUP:
                d["group"] = config.to_dict()
            else:
                d["knockout"][stage.value] = config.to_dict()
        if self.bracket is not None:
            d["bracket"] = self.bracket.to_dict()
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "ScoringConfig":
        if not isinstance(data, dict):
            raise SnapshotError("Scoring config must be an object")
        stages: Dict[Stage, StageScoring] = {}
        if isinstance(data.get("group"), dict):
            group = StageScoring.from_dict(data["group"])
            # no knockout bonus in the group stage
            stages[Stage.GROUP] = StageScoring(
                group.exact_score_both, group.exact_score_one, group.result
            )
        for stage_key, value in (data.get("knockout") or {}).items():
            stage = parse_stage(stage_key)
            if stage is None or stage is Stage.GROUP or not isinstance(value, dict):
                _log.warning(f"Ignoring scoring entry for unknown stage {stage_key!r}")
                continue
            stages[stage] = StageScoring.from_dict(value)
        bracket = data.get("bracket")
        return cls(
            stages=stages,
            bracket=BracketScoring.from_dict(bracket) if isinstance(bracket, dict) else None,
        )


# ═══════════════════════════════════════════════════════════════
# MEMBERS
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Member:
    """A pool participant.  Identity is owned elsewhere; ``id`` is opaque."""
    id: str
    name: str
    handle: Optional[str] = None
    email: Optional[str] = None
    is_admin: bool = False

    def to_dict(self) -> dict:
        d: Dict[str, Any] = {"id": self.id, "name": self.name}
        if self.handle:
            d["handle"] = self.handle
        if self.email:
            d["email"] = self.email
        if self.is_admin:
            d["isAdmin"] = True
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "Member":
        if not isinstance(data, dict):
            raise SnapshotError("Member record must be an object")
        email = str(data.get("email") or "").strip().lower() or None
        member_id = str(data.get("id") or data.get("uid") or email or "").strip()
        if not member_id:
            raise SnapshotError("Member record has no id")
        name = str(data.get("name") or "").strip() or email or member_id
        handle = data.get("handle")
        return cls(
            id=member_id,
            name=name,
            handle=str(handle) if handle else None,
            email=email,
            is_admin=data.get("isAdmin") is True,
        )
