#!/usr/bin/env python3
"""
Rebuild leaderboard.json from the pool's snapshot files.

Reads from the data directory:
    matches.json                  required  {lastUpdated, matches}
    scoring.json                  required
    picks.json                    required  {picks: [{userId, picks, updatedAt}]}
    members.json                  optional  {members: [...]}
    bracket-group.json            optional  {group: [...]}
    bracket-knockout.json         optional  {knockout: [...]}
    best-third-qualifiers.json    optional  {qualifiers: [...]}

Usage:
    python update_leaderboard.py
    python update_leaderboard.py --data-dir public/data --db data/pickpool.db
    python update_leaderboard.py --demo knockout-partial --output /tmp/leaderboard.json
"""

import argparse
import json
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from pickpool.errors import PickPoolError, SnapshotError
from pickpool.models import MatchesSnapshot, Member, parse_timestamp
from pickpool.merge import combine_bracket_docs, flatten_picks_snapshot
from pickpool.leaderboard import build_leaderboard, with_active_members
from pickpool.config import SCORING_FILENAME, get_data_dir, load_scoring_config
from pickpool import db, simulation

_log = logging.getLogger("pickpool.update_leaderboard")


def read_json(data_dir: Path, filename: str) -> dict:
    try:
        with open(data_dir / filename, encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise SnapshotError(f"Cannot read {filename}: {e}") from e


def read_json_optional(data_dir: Path, filename: str, fallback: dict) -> dict:
    path = data_dir / filename
    if not path.exists():
        _log.debug(f"{filename} not present; using defaults")
        return fallback
    return read_json(data_dir, filename)


def load_members(data_dir: Path) -> list:
    members = []
    for record in read_json_optional(data_dir, "members.json", {"members": []}).get("members") or []:
        try:
            members.append(Member.from_dict(record))
        except PickPoolError as e:
            _log.warning(f"Skipping member record: {e}")
    return members


def run(data_dir: Path, demo: str = None):
    """Return the leaderboard built from ``data_dir``.

    With ``demo`` set, the fixtures in matches.json are advanced to that
    scenario and the pool is replaced by simulated members.
    """
    snapshot = MatchesSnapshot.from_dict(read_json(data_dir, "matches.json"))
    scoring = load_scoring_config(data_dir / SCORING_FILENAME)

    if demo:
        matches = simulation.apply_scenario(snapshot.matches, demo)
        members = simulation.build_sim_members()
        picks = simulation.build_sim_picks(members, matches, demo)
        brackets = simulation.build_sim_brackets(members, matches, demo)
        return build_leaderboard(
            members, matches, picks, scoring,
            bracket_predictions=brackets,
            last_updated=parse_timestamp(simulation.SCENARIOS[demo]),
        )

    picks_file = read_json(data_dir, "picks.json")
    group_docs = read_json_optional(data_dir, "bracket-group.json", {"group": []}).get("group") or []
    knockout_docs = read_json_optional(
        data_dir, "bracket-knockout.json", {"knockout": []}
    ).get("knockout") or []
    best_thirds = read_json_optional(
        data_dir, "best-third-qualifiers.json", {"qualifiers": []}
    ).get("qualifiers") or None

    pick_docs = picks_file.get("picks") or []
    picks = flatten_picks_snapshot(pick_docs)
    brackets = combine_bracket_docs(group_docs, knockout_docs)

    active = {doc.get("userId") for doc in pick_docs + group_docs + knockout_docs if isinstance(doc, dict)}
    members = with_active_members(load_members(data_dir), active)

    return build_leaderboard(
        members,
        snapshot.matches,
        picks,
        scoring,
        bracket_predictions=brackets,
        best_third_override=best_thirds,
        last_updated=snapshot.last_updated,
    )


def main():
    parser = argparse.ArgumentParser(description="Rebuild the pool leaderboard")
    parser.add_argument("--data-dir", type=Path, default=None, help="Snapshot directory")
    parser.add_argument("--output", type=Path, default=None, help="Output file (default <data-dir>/leaderboard.json)")
    parser.add_argument("--db", type=Path, default=None, help="Also store the snapshot in this SQLite file")
    parser.add_argument("--pool", default="default", help="Pool id used with --db")
    parser.add_argument("--demo", choices=sorted(simulation.SCENARIOS), default=None,
                        help="Score a simulated pool at this scenario")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    data_dir = args.data_dir or get_data_dir()
    if not data_dir.exists():
        print(f"Data directory not found: {data_dir}")
        sys.exit(1)

    try:
        board = run(data_dir, demo=args.demo)
    except (PickPoolError, OSError) as e:
        _log.error(f"Leaderboard not updated: {e}")
        sys.exit(1)

    snapshot = board.to_dict()
    output = args.output or data_dir / "leaderboard.json"
    with open(output, "w", encoding="utf-8") as f:
        json.dump(snapshot, f, indent=2)
        f.write("\n")

    if args.db:
        db.set_db_path(args.db)
        db.save_leaderboard(snapshot, pool_id=args.pool)

    if board.dropped_picks:
        _log.warning(f"{board.dropped_picks} scored picks had no matching member")
    print(f"Updated {output} ({len(board.entries)} entries).")


if __name__ == "__main__":
    main()
