"""
Knockout Qualification
======================

Turns group tables into the 32 round-of-32 qualifiers: every group's top
two plus the eight best third-placed teams, ranked across groups with the
same tie-break chain the tables use.

The result is either *determined* (a full, ordered 32-code list) or
*undetermined* with a reason.  Callers must not build a bracket from an
undetermined result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from pickpool.models import BEST_THIRD_SLOTS
from pickpool.standings import GroupSummary, rank_rows

_log = logging.getLogger("pickpool.qualification")

KNOCKOUT_SLOTS = 32


@dataclass
class QualificationResult:
    """Outcome of qualification.

    ``qualifiers`` is ordered group winners (by group id), then runners-up
    (by group id), then best thirds in rank order.  It is empty unless
    ``determined`` is set.  ``best_thirds`` can be filled even when the full
    list is not, e.g. from an override while groups are still playing.
    """
    determined: bool
    qualifiers: List[str] = field(default_factory=list)
    group_winners: List[str] = field(default_factory=list)
    runners_up: List[str] = field(default_factory=list)
    best_thirds: Optional[List[str]] = None
    reason: str = ""

    def to_dict(self) -> dict:
        return {
            "determined": self.determined,
            "qualifiers": self.qualifiers,
            "groupWinners": self.group_winners,
            "runnersUp": self.runners_up,
            "bestThirds": self.best_thirds,
            "reason": self.reason,
        }


def resolve_best_thirds(
    summaries: Dict[str, GroupSummary],
    override: Optional[List[str]] = None,
) -> Optional[List[str]]:
    """Return the eight best third-placed team codes, or None if unknown.

    A non-empty ``override`` is returned as given.  Otherwise at least eight
    groups must be complete with a third-placed row; a team already in some
    group's top two is never counted as a third.
    """
    if override:
        return list(override)

    complete = [s for s in summaries.values() if s.complete]
    if len(complete) < BEST_THIRD_SLOTS:
        _log.debug(f"Best thirds undetermined: {len(complete)} complete groups")
        return None

    top_two = {code for s in complete for code in s.top_two()}
    thirds = []
    for summary in complete:
        row = summary.row_at(3)
        if row is not None and row.team_code not in top_two:
            thirds.append(row)

    if len(thirds) < BEST_THIRD_SLOTS:
        _log.debug(f"Best thirds undetermined: {len(thirds)} eligible third-place rows")
        return None
    return [row.team_code for row in rank_rows(thirds)[:BEST_THIRD_SLOTS]]


def resolve_qualifiers(
    summaries: Dict[str, GroupSummary],
    best_third_override: Optional[List[str]] = None,
) -> QualificationResult:
    """Work out the round-of-32 field from the group tables."""
    group_ids = sorted(summaries)
    best_thirds = resolve_best_thirds(summaries, best_third_override)

    winners: List[str] = []
    runners: List[str] = []
    for gid in group_ids:
        summary = summaries[gid]
        if not summary.complete:
            continue
        first, second = summary.row_at(1), summary.row_at(2)
        if first is not None:
            winners.append(first.team_code)
        if second is not None:
            runners.append(second.team_code)

    incomplete = [gid for gid in group_ids if not summaries[gid].complete]
    if incomplete:
        return QualificationResult(
            determined=False,
            group_winners=winners,
            runners_up=runners,
            best_thirds=best_thirds,
            reason=f"groups not complete: {', '.join(incomplete)}",
        )
    if best_thirds is None:
        return QualificationResult(
            determined=False,
            group_winners=winners,
            runners_up=runners,
            reason="best third-placed teams cannot be determined",
        )

    top_two = set(winners) | set(runners)
    thirds = [code for code in best_thirds if code not in top_two]
    qualifiers = winners + runners + thirds
    if len(qualifiers) != KNOCKOUT_SLOTS or len(set(qualifiers)) != KNOCKOUT_SLOTS:
        _log.warning(
            f"Qualification produced {len(qualifiers)} codes "
            f"({len(set(qualifiers))} distinct), expected {KNOCKOUT_SLOTS}"
        )
        return QualificationResult(
            determined=False,
            group_winners=winners,
            runners_up=runners,
            best_thirds=best_thirds,
            reason=f"expected {KNOCKOUT_SLOTS} distinct qualifiers, got {len(set(qualifiers))}",
        )

    _log.info(f"Qualification determined from {len(group_ids)} groups")
    return QualificationResult(
        determined=True,
        qualifiers=qualifiers,
        group_winners=winners,
        runners_up=runners,
        best_thirds=best_thirds,
    )
