"""
Kick-off times and referee duty.

schedule_all() puts every unscheduled match on one pitch back to back,
alternating between groups so no group plays several games in a row.
assign_referees() hands each group match to a team that is not playing at
that time, preferring teams from another group and spreading the duty evenly.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta
from typing import Sequence

from kickoff.models import Group, Match, Referee, Schedule

KNOCKOUT_BUCKET = "Knockout"


def schedule_all(
    matches: Sequence[Match],
    start: datetime,
    match_minutes: int,
    field: str,
) -> list[Match]:
    """
    Schedule every open match that has no kick-off time yet.

    Returns the matches that were scheduled, in kick-off order.
    """
    buckets: dict[str, list[Match]] = {}
    for match in matches:
        if match.scheduled is not None or match.completed or match.is_bye:
            continue
        buckets.setdefault(match.group or KNOCKOUT_BUCKET, []).append(match)

    order: list[Match] = []
    depth = max((len(b) for b in buckets.values()), default=0)
    for i in range(depth):
        for bucket in buckets.values():
            if i < len(bucket):
                order.append(bucket[i])

    slot = timedelta(minutes=match_minutes)
    for i, match in enumerate(order):
        match.scheduled = Schedule(datetime=start + i * slot, field=field)
    return order


def assign_referees(matches: Sequence[Match], groups: Sequence[Group]) -> list[Match]:
    """
    Give every open group-stage match without a referee a referee team.

    Returns the matches that received a referee.
    """
    group_of = {team: g.name for g in groups for team in g.teams}
    all_teams = [team for g in groups for team in g.teams]
    load = Counter(m.referee.team for m in matches if m.referee is not None)

    busy: dict[datetime, set[str]] = {}
    for m in matches:
        if m.scheduled is not None and m.is_ready:
            busy.setdefault(m.scheduled.datetime, set()).update((m.team1, m.team2))

    open_matches = [
        m for m in matches
        if m.phase in ("group", "penalty") and m.is_ready and not m.completed and m.referee is None
    ]
    open_matches.sort(key=lambda m: (m.scheduled is None, m.scheduled.datetime if m.scheduled else datetime.min))

    assigned: list[Match] = []
    for match in open_matches:
        playing = {match.team1, match.team2}
        if match.scheduled is not None:
            playing |= busy.get(match.scheduled.datetime, set())
        candidates = [t for t in all_teams if t not in playing]
        if len(groups) > 1:
            other = [t for t in candidates if group_of.get(t) != match.group]
            candidates = other or candidates
        if not candidates:
            continue
        referee = min(candidates, key=lambda t: (load[t], all_teams.index(t)))
        load[referee] += 1
        match.referee = Referee(team=referee, group=group_of.get(referee))
        assigned.append(match)
    return assigned
