"""
Group stage and league fixtures.

Groups are formed from the team list in registration order (or shuffled with
a fixed seed), sized as evenly as possible.  Inside a group every team plays
every other team, or, when max_games_per_team is set, a k-regular subset of
those pairings:

- even group size: the first k rounds of the circle method, each round a
  perfect matching, so every team gets exactly k games;
- odd group size: k must be even (n·k even), and the circulant graph that
  links team i with i±1 … i±k/2 gives every team exactly k games.
"""

from __future__ import annotations

import math
import random
from typing import Sequence, TypeVar

from kickoff.models import Group, Match, TournamentConfig
from kickoff.standings import compute_table

T = TypeVar("T")

Pairing = tuple[T, T]


def group_sizes(team_count: int, group_size: int) -> list[int]:
    """
    Sizes of the groups for ``team_count`` teams.

    ceil(n / group_size) groups whose sizes differ by at most one, larger
    groups first.  For n >= 4 and group sizes 3–5 no group is smaller than 2.
    """
    if team_count <= 0:
        return []
    count = math.ceil(team_count / group_size)
    base, extra = divmod(team_count, count)
    return [base + 1 if i < extra else base for i in range(count)]


def group_name(index: int) -> str:
    return f"Group {chr(ord('A') + index)}"


def order_teams(teams: Sequence[str], shuffle_seed: int | None) -> list[str]:
    ordered = list(teams)
    if shuffle_seed is not None:
        random.Random(shuffle_seed).shuffle(ordered)
    return ordered


def partition_groups(teams: Sequence[str], config: TournamentConfig) -> list[Group]:
    """Split teams into named groups with empty tables."""
    ordered = order_teams(teams, config.shuffle_seed)
    groups: list[Group] = []
    start = 0
    for index, size in enumerate(group_sizes(len(ordered), config.group_size)):
        members = ordered[start:start + size]
        groups.append(Group(name=group_name(index), teams=members, table=compute_table(members, [])))
        start += size
    return groups


def round_robin_rounds(teams: Sequence[T]) -> list[list[Pairing]]:
    """
    Circle-method rounds for a full round robin.

    With an odd number of teams one team sits out each round.
    """
    slots: list[T | None] = list(teams)
    if len(slots) % 2:
        slots.append(None)
    n = len(slots)
    rounds: list[list[Pairing]] = []
    for _ in range(n - 1):
        pairs = []
        for i in range(n // 2):
            a, b = slots[i], slots[n - 1 - i]
            if a is not None and b is not None:
                pairs.append((a, b))
        rounds.append(pairs)
        # keep slot 0 fixed, rotate everything else one step
        slots = [slots[0], slots[-1], *slots[1:-1]]
    return rounds


def regular_pairings(teams: Sequence[T], games_per_team: int | None) -> list[list[Pairing]]:
    """
    Pairings, grouped into rounds, in which every team plays ``games_per_team``
    games.  ``None`` (or a value of n-1 or more) means a full round robin.

    Raises:
        ValueError: n·k is odd, so no such schedule exists.
    """
    n = len(teams)
    if games_per_team is None or games_per_team >= n - 1:
        return round_robin_rounds(teams)
    if games_per_team < 1:
        return []
    if (n * games_per_team) % 2:
        raise ValueError(
            f"{n} teams cannot each play {games_per_team} games (odd total)"
        )

    if n % 2 == 0:
        return round_robin_rounds(teams)[:games_per_team]

    rounds: list[list[Pairing]] = []
    for distance in range(1, games_per_team // 2 + 1):
        rounds.append([(teams[i], teams[(i + distance) % n]) for i in range(n)])
    return rounds


def generate_group_stage(
    teams: Sequence[str],
    config: TournamentConfig,
) -> tuple[list[Group], list[Match]]:
    """Groups and their round-robin (or k-regular) fixtures."""
    groups = partition_groups(teams, config)
    matches: list[Match] = []
    for index, group in enumerate(groups):
        games = config.max_games_per_team
        if games is not None:
            games = min(games, len(group.teams) - 1)
        matches.extend(_group_matches(group, games, id_prefix=f"group_{index}"))
    return groups, matches


def generate_league(
    teams: Sequence[str],
    config: TournamentConfig,
) -> tuple[list[Group], list[Match]]:
    """One table of all teams; each team plays max_games_per_team games."""
    members = order_teams(teams, config.shuffle_seed)
    group = Group(name="League", teams=members, table=compute_table(members, []))
    matches = _group_matches(group, config.max_games_per_team, id_prefix="league")
    return [group], matches


def _group_matches(group: Group, games_per_team: int | None, id_prefix: str) -> list[Match]:
    position = {team: i for i, team in enumerate(group.teams)}
    matches: list[Match] = []
    for round_num, pairs in enumerate(regular_pairings(group.teams, games_per_team), 1):
        for a, b in pairs:
            i, j = sorted((position[a], position[b]))
            team1, team2 = group.teams[i], group.teams[j]
            matches.append(
                Match(
                    id=f"{id_prefix}_{i}_{j}",
                    team1=team1,
                    team2=team2,
                    phase="group",
                    group=group.name,
                    round=round_num,
                    label=f"{group.name} · Round {round_num}",
                )
            )
    return matches
