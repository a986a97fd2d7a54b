"""
Standings calculator: derives a group table from teams and completed matches.

compute_table() is a pure function and is called on every query; there are no
incremental counters to drift out of sync after a result correction or reset.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from kickoff.models import Group, Match, Standing

POINTS_WIN = 3
POINTS_DRAW = 1


def standings_key(row: Standing) -> tuple[int, int, int]:
    """Ranking key shared by tables, Swiss pairing and tie detection."""
    return row.points, row.goal_diff, row.goals_for


def compute_table(teams: Sequence[str], matches: Iterable[Match]) -> list[Standing]:
    """
    Build a sorted table for ``teams`` from ``matches``.

    Only completed, scored, non-bye matches between two listed teams count.
    Penalty shootouts never touch goals or points; they only reorder a cluster
    of rows that is tied on points, goal difference and goals for.
    """
    rows = {team: Standing(team=team) for team in teams}
    shootouts: list[Match] = []

    for match in matches:
        if not _counts(match, rows):
            continue
        if match.is_penalty_shootout:
            shootouts.append(match)
            continue

        home, away = rows[match.team1], rows[match.team2]
        home.games += 1
        away.games += 1
        home.goals_for += match.score1
        home.goals_against += match.score2
        away.goals_for += match.score2
        away.goals_against += match.score1

        if match.score1 > match.score2:
            home.wins += 1
            home.points += POINTS_WIN
            away.losses += 1
        elif match.score2 > match.score1:
            away.wins += 1
            away.points += POINTS_WIN
            home.losses += 1
        else:
            home.draws += 1
            away.draws += 1
            home.points += POINTS_DRAW
            away.points += POINTS_DRAW

    # sorted() is stable, so full ties keep the order teams were passed in
    table = sorted(rows.values(), key=standings_key, reverse=True)
    if shootouts:
        table = _apply_shootouts(table, shootouts)
    return table


def rank_teams(groups: Sequence[Group]) -> list[str]:
    """
    Merge group tables into one final table for knockout seeding.

    All group winners come first, then all runners-up, and so on; inside each
    tier the rows are ordered with the table comparator.
    """
    ranked: list[str] = []
    depth = max((len(g.table) for g in groups), default=0)
    for position in range(depth):
        tier = [g.table[position] for g in groups if position < len(g.table)]
        tier.sort(key=standings_key, reverse=True)
        ranked.extend(row.team for row in tier)
    return ranked


# --------------------------------------------------------------------------- #
# Helpers                                                                      #
# --------------------------------------------------------------------------- #

def _counts(match: Match, rows: dict[str, Standing]) -> bool:
    return (
        match.completed
        and not match.is_bye
        and match.score1 is not None
        and match.score2 is not None
        and match.team1 in rows
        and match.team2 in rows
    )


def _apply_shootouts(table: list[Standing], shootouts: list[Match]) -> list[Standing]:
    """Reorder each tied cluster by shootout wins between its own members."""
    result: list[Standing] = []
    start = 0
    while start < len(table):
        end = start + 1
        while end < len(table) and standings_key(table[end]) == standings_key(table[start]):
            end += 1
        cluster = table[start:end]
        if len(cluster) > 1:
            members = {row.team for row in cluster}
            for match in shootouts:
                if match.team1 not in members or match.team2 not in members:
                    continue
                winner = _shootout_winner(match)
                if winner is not None:
                    next(row for row in cluster if row.team == winner).penalty_wins += 1
            if any(row.penalty_wins for row in cluster):
                cluster = sorted(cluster, key=lambda row: row.penalty_wins, reverse=True)
        result.extend(cluster)
        start = end
    return result


def _shootout_winner(match: Match) -> str | None:
    if match.score1 == match.score2:
        return None
    return match.team1 if match.score1 > match.score2 else match.team2
