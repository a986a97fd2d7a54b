"""
Swiss-system pairing.

Each round ranks the teams by the standings comparator and pairs neighbours
from the top down, backtracking whenever a pairing would repeat an earlier
fixture.  Rematches are only allowed when no rematch-free pairing of the
whole field exists.  With an odd field the lowest-ranked team that has not
had a bye yet sits the round out; byes count for nothing in the table.

There is no randomness: identical standings and history give identical
pairings.
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from kickoff.models import Group, Match, Standing, TournamentConfig
from kickoff.standings import compute_table, standings_key

logger = logging.getLogger(__name__)

SWISS_GROUP = "Swiss"


def generate_swiss_stage(
    teams: Sequence[str],
    config: TournamentConfig,
) -> tuple[list[Group], list[Match]]:
    """The single Swiss group and its first round."""
    group = Group(name=SWISS_GROUP, teams=list(teams), table=compute_table(teams, []))
    return [group], generate_swiss_round(teams, group.table, 1, [])


def swiss_order(teams: Sequence[str], standings: Iterable[Standing]) -> list[str]:
    """Teams by standing (best first); full ties keep the order of ``teams``."""
    rows = {row.team: row for row in standings}
    position = {team: i for i, team in enumerate(teams)}

    def key(team: str) -> tuple[int, int, int, int]:
        row = rows.get(team)
        points, diff, goals = standings_key(row) if row else (0, 0, 0)
        return -points, -diff, -goals, position[team]

    return sorted(teams, key=key)


def generate_swiss_round(
    teams: Sequence[str],
    standings: Iterable[Standing],
    round_number: int,
    history: Iterable[Match],
    group: str = SWISS_GROUP,
) -> list[Match]:
    """
    Pair one Swiss round.

    Args:
        teams:        all participating team names
        standings:    current table rows (any order)
        round_number: 1-based round being generated
        history:      every earlier match; used for rematch and bye avoidance
    """
    ranked = swiss_order(teams, standings)
    played: set[frozenset[str]] = set()
    had_bye: set[str] = set()
    for match in history:
        if match.is_bye and match.team1 is not None:
            had_bye.add(match.team1)
        elif match.team1 is not None and match.team2 is not None:
            played.add(frozenset((match.team1, match.team2)))

    bye, pairs = _pair_round(ranked, played, had_bye)

    matches = [
        Match(
            id=f"swiss_r{round_number}_{i}",
            team1=a,
            team2=b,
            phase="group",
            group=group,
            round=round_number,
            label=f"Round {round_number}",
        )
        for i, (a, b) in enumerate(pairs, 1)
    ]
    if bye is not None:
        matches.append(
            Match(
                id=f"swiss_r{round_number}_bye",
                team1=bye,
                team2=None,
                phase="group",
                group=group,
                round=round_number,
                label=f"Round {round_number} · Bye",
                completed=True,
                is_bye=True,
            )
        )
    return matches


# --------------------------------------------------------------------------- #
# Pairing search                                                               #
# --------------------------------------------------------------------------- #

def _pair_round(
    ranked: list[str],
    played: set[frozenset[str]],
    had_bye: set[str],
) -> tuple[str | None, list[tuple[str, str]]]:
    if len(ranked) % 2 == 0:
        pairs = _pair(ranked, played, allow_rematch=False)
        if pairs is None:
            logger.warning("No rematch-free Swiss pairing exists; allowing rematches")
            pairs = _pair(ranked, played, allow_rematch=True)
        return None, pairs

    # lowest-ranked first; teams that already had a bye only as a last resort
    fresh = [t for t in reversed(ranked) if t not in had_bye]
    repeat = [t for t in reversed(ranked) if t in had_bye]
    for candidates, allow_rematch in ((fresh, False), (repeat, False), (fresh or repeat, True)):
        for bye in candidates:
            pool = [t for t in ranked if t != bye]
            pairs = _pair(pool, played, allow_rematch)
            if pairs is not None:
                if allow_rematch:
                    logger.warning("No rematch-free Swiss pairing exists; allowing rematches")
                return bye, pairs
    raise AssertionError("pairing with rematches allowed always succeeds")


def _pair(
    pool: list[str],
    played: set[frozenset[str]],
    allow_rematch: bool,
) -> list[tuple[str, str]] | None:
    failed: set[tuple[str, ...]] = set()

    def search(remaining: tuple[str, ...]) -> list[tuple[str, str]] | None:
        if not remaining:
            return []
        if remaining in failed:
            return None
        first, rest = remaining[0], remaining[1:]
        for i, opponent in enumerate(rest):
            if not allow_rematch and frozenset((first, opponent)) in played:
                continue
            tail = search(rest[:i] + rest[i + 1:])
            if tail is not None:
                return [(first, opponent), *tail]
        failed.add(remaining)
        return None

    return search(tuple(pool))
