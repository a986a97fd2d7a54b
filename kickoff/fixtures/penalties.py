"""
Penalty shootouts that break ties left after group play.

Teams of one group that are level on points, goal difference and goals for
play a single shootout against every other member of their tie.  The results
feed the standings as an explicit tiebreak (see compute_table); they never
change goals or points.
"""

from __future__ import annotations

from itertools import combinations
from typing import Sequence

from kickoff.models import Group, Match, Standing
from kickoff.standings import standings_key


def find_tied_clusters(table: Sequence[Standing]) -> list[list[str]]:
    """Runs of two or more rows with an identical ranking key, in table order."""
    clusters: list[list[str]] = []
    current: list[Standing] = []
    for row in table:
        if current and standings_key(row) == standings_key(current[-1]):
            current.append(row)
            continue
        if len(current) > 1:
            clusters.append([r.team for r in current])
        current = [row]
    if len(current) > 1:
        clusters.append([r.team for r in current])
    return clusters


def generate_penalty_shootouts(groups: Sequence[Group]) -> list[Match]:
    """
    Shootout fixtures for every tied cluster of every group table.

    Match ids depend only on group name and team positions, so running this
    again on the same tables gives the same fixtures.
    """
    matches: list[Match] = []
    for group in groups:
        slug = group.name.lower().replace(" ", "_")
        position = {team: i for i, team in enumerate(group.teams)}
        for cluster in find_tied_clusters(group.table):
            ordered = sorted(cluster, key=lambda team: position.get(team, len(position)))
            for a, b in combinations(ordered, 2):
                i, j = position.get(a, -1), position.get(b, -1)
                matches.append(
                    Match(
                        id=f"penalty_{slug}_{i}_{j}",
                        team1=a,
                        team2=b,
                        phase="penalty",
                        group=group.name,
                        label=f"{group.name} · Penalty shootout",
                        is_penalty_shootout=True,
                    )
                )
    return matches
