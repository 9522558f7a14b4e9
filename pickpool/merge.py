"""
Prediction Merging
==================

Reconciles the authoritative (baseline) predictions with a member's locally
cached overrides before scoring or bracket work sees them.

Two shapes:
  - picks merge per ``(user_id, match_id)``: an override replaces the
    baseline pick for the same match; the member's other baseline picks
    stay.  When both carry ``updated_at`` the later one wins.
  - brackets swap whole: a cached bracket with any data replaces the
    baseline document outright, otherwise the baseline stands.

The local cache is an injected ``PredictionStore`` (get/set by key), so
nothing here touches ambient state.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from pickpool.errors import SnapshotError
from pickpool.models import (
    BracketPrediction,
    Pick,
    format_timestamp,
    groups_from_dict,
    best_thirds_from_list,
    knockout_from_dict,
    parse_decided_by,
    parse_score,
    parse_side,
    parse_timestamp,
)

_log = logging.getLogger("pickpool.merge")

PICKS_KEY_PREFIX = "wc-picks"
BRACKET_KEY_PREFIX = "wc-bracket"


# ═══════════════════════════════════════════════════════════════
# STORE
# ═══════════════════════════════════════════════════════════════

class PredictionStore(Protocol):
    """Key/value capability for cached predictions (values are JSON text)."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...


class InMemoryPredictionStore:
    """Dict-backed store for tests and single-process use."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def keys(self) -> List[str]:
        return sorted(self._data)


def picks_key(user_id: str) -> str:
    return f"{PICKS_KEY_PREFIX}:{user_id}"


def bracket_key(user_id: str) -> str:
    return f"{BRACKET_KEY_PREFIX}:{user_id}"


def _read_json(store: PredictionStore, key: str) -> Optional[dict]:
    raw = store.get(key)
    if not raw:
        return None
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        _log.warning(f"Cached value under {key} is not valid JSON; ignoring it")
        return None
    return parsed if isinstance(parsed, dict) else None


def load_local_picks(store: PredictionStore, user_id: str) -> List[Pick]:
    parsed = _read_json(store, picks_key(user_id))
    if parsed is None or not isinstance(parsed.get("picks"), list):
        return []
    picks = []
    for record in parsed["picks"]:
        try:
            picks.append(Pick.from_dict(record, user_id=user_id))
        except SnapshotError as e:
            _log.warning(f"Skipping cached pick for {user_id}: {e}")
    return picks


def save_local_picks(store: PredictionStore, user_id: str, picks: List[Pick]):
    store.set(picks_key(user_id), json.dumps({"picks": [p.to_dict() for p in picks]}))


def load_local_bracket(store: PredictionStore, user_id: str) -> Optional[BracketPrediction]:
    parsed = _read_json(store, bracket_key(user_id))
    if parsed is None or not isinstance(parsed.get("prediction"), dict):
        return None
    try:
        return BracketPrediction.from_dict(parsed["prediction"], user_id=user_id)
    except SnapshotError as e:
        _log.warning(f"Cached bracket for {user_id} is unusable: {e}")
        return None


def save_local_bracket(store: PredictionStore, prediction: BracketPrediction):
    store.set(bracket_key(prediction.user_id), json.dumps({"prediction": prediction.to_dict()}))


# ═══════════════════════════════════════════════════════════════
# PICKS
# ═══════════════════════════════════════════════════════════════

def _newer(candidate: Pick, current: Pick) -> bool:
    """True unless ``current`` is strictly newer than ``candidate``."""
    if candidate.updated_at is None or current.updated_at is None:
        return True
    return candidate.updated_at >= current.updated_at


def dedupe_picks(picks: Iterable[Pick]) -> List[Pick]:
    """Collapse duplicate ``(user_id, match_id)`` records, last write wins.

    Equal timestamps go to the later record.  First-seen order is kept.
    """
    chosen: Dict[Tuple[str, str], Pick] = {}
    for pick in picks:
        current = chosen.get(pick.key)
        if current is None or _newer(pick, current):
            chosen[pick.key] = pick
    return list(chosen.values())


def merge_picks(baseline: List[Pick], override: List[Pick]) -> List[Pick]:
    """Overlay override picks onto the baseline by ``(user_id, match_id)``.

    Duplicate baseline records collapse last-write-wins.  An empty override
    returns ``baseline`` itself when it has no duplicates.  Neither input is
    modified.  Merging the same override twice gives the same list.
    """
    deduped = dedupe_picks(baseline)
    if len(deduped) != len(baseline):
        baseline = deduped
    if not override:
        return baseline
    replacements = {pick.key: pick for pick in dedupe_picks(override)}
    merged: List[Pick] = []
    seen = set()
    for pick in baseline:
        incoming = replacements.get(pick.key)
        if incoming is not None and pick.key not in seen:
            merged.append(incoming if _newer(incoming, pick) else pick)
            seen.add(pick.key)
        elif incoming is None:
            merged.append(pick)
    for key, pick in replacements.items():
        if key not in seen:
            merged.append(pick)
    return merged


def merge_local_picks(store: PredictionStore, baseline: List[Pick], user_id: str) -> List[Pick]:
    return merge_picks(baseline, load_local_picks(store, user_id))


def upsert_pick(
    picks: List[Pick],
    user_id: str,
    match_id: str,
    home_score=None,
    away_score=None,
    advances=None,
    decided_by=None,
    now: Optional[datetime] = None,
) -> List[Pick]:
    """Insert or update the member's pick for a match; returns a new list.

    An update keeps the original ``created_at`` and stamps ``updated_at``.
    """
    now = now or datetime.now(timezone.utc)
    fields = dict(
        home_score=parse_score(home_score),
        away_score=parse_score(away_score),
        advances=parse_side(advances),
        decided_by=parse_decided_by(decided_by),
    )
    out = list(picks)
    for i, pick in enumerate(out):
        if pick.user_id == user_id and pick.match_id == match_id:
            out[i] = Pick(
                id=pick.id,
                match_id=match_id,
                user_id=user_id,
                outcome=None,
                winner=pick.winner,
                created_at=pick.created_at or now,
                updated_at=now,
                **fields,
            )
            return out
    out.append(Pick(
        id=f"pick-{user_id}-{match_id}",
        match_id=match_id,
        user_id=user_id,
        created_at=now,
        updated_at=now,
        **fields,
    ))
    return out


def flatten_picks_snapshot(documents: Iterable[dict]) -> List[Pick]:
    """Flatten per-user pick documents into one de-duplicated pick list.

    A document is ``{userId, updatedAt, picks}`` where ``picks`` is a list
    or a ``{match_id: pick}`` map.  Records without a match id are dropped;
    the document's ``updatedAt`` fills in missing pick timestamps.
    """
    picks: List[Pick] = []
    for doc in documents:
        if not isinstance(doc, dict):
            continue
        user_id = str(doc.get("userId") or "").strip()
        fallback = parse_timestamp(doc.get("updatedAt"))
        raw = doc.get("picks")
        if isinstance(raw, list):
            records = [(None, record) for record in raw]
        elif isinstance(raw, dict):
            records = list(raw.items())
        else:
            records = []

        user_picks = []
        for match_id, record in records:
            try:
                user_picks.append(Pick.from_dict(
                    record, user_id=user_id, match_id=match_id, fallback_timestamp=fallback,
                ))
            except SnapshotError as e:
                _log.debug(f"Dropping pick record in document for {user_id or '?'}: {e}")
        picks.extend(dedupe_picks(user_picks))
    return dedupe_picks(picks)


# ═══════════════════════════════════════════════════════════════
# BRACKETS
# ═══════════════════════════════════════════════════════════════

def has_bracket_data(prediction: Optional[BracketPrediction]) -> bool:
    if prediction is None:
        return False
    if any(prediction.best_thirds):
        return True
    if any(gp.first or gp.second for gp in prediction.groups.values()):
        return True
    return bool(prediction.knockout)


def merge_bracket(
    baseline: Optional[BracketPrediction],
    override: Optional[BracketPrediction],
) -> Optional[BracketPrediction]:
    """Whole-record swap: a non-empty override wins, no field-level merge."""
    if has_bracket_data(override):
        return override
    return baseline


def merge_local_bracket(
    store: PredictionStore,
    baseline: Optional[BracketPrediction],
    user_id: str,
) -> Optional[BracketPrediction]:
    return merge_bracket(baseline, load_local_bracket(store, user_id))


def combine_bracket_docs(
    group_docs: Iterable[dict],
    knockout_docs: Iterable[dict],
) -> Dict[str, BracketPrediction]:
    """Join the stored group-stage and knockout documents per user.

    ``updated_at`` prefers the knockout document's timestamp.
    """
    groups_by_user: Dict[str, dict] = {}
    knockout_by_user: Dict[str, dict] = {}
    for doc in group_docs or []:
        if isinstance(doc, dict) and doc.get("userId"):
            groups_by_user[str(doc["userId"])] = doc
    for doc in knockout_docs or []:
        if isinstance(doc, dict) and doc.get("userId"):
            knockout_by_user[str(doc["userId"])] = doc

    predictions: Dict[str, BracketPrediction] = {}
    for user_id in sorted(set(groups_by_user) | set(knockout_by_user)):
        group_doc = groups_by_user.get(user_id, {})
        knockout_doc = knockout_by_user.get(user_id, {})
        updated_at = parse_timestamp(knockout_doc.get("updatedAt")) or parse_timestamp(
            group_doc.get("updatedAt")
        )
        predictions[user_id] = BracketPrediction(
            user_id=user_id,
            groups=groups_from_dict(group_doc.get("groups")),
            best_thirds=best_thirds_from_list(group_doc.get("bestThirds")),
            knockout=knockout_from_dict(knockout_doc.get("knockout")),
            created_at=updated_at,
            updated_at=updated_at,
        )
    _log.debug(f"Combined bracket documents for {len(predictions)} users")
    return predictions


def split_bracket_docs(prediction: BracketPrediction) -> Tuple[dict, dict]:
    """Inverse of ``combine_bracket_docs`` for one user."""
    stamp = format_timestamp(prediction.updated_at)
    group_doc = {
        "userId": prediction.user_id,
        "groups": {gid: gp.to_dict() for gid, gp in sorted(prediction.groups.items())},
        "bestThirds": list(prediction.best_thirds),
        "updatedAt": stamp,
    }
    knockout_doc = {
        "userId": prediction.user_id,
        "knockout": prediction.knockout_to_dict(),
        "updatedAt": stamp,
    }
    return group_doc, knockout_doc
