"""
Format analyzer: decides whether a tournament format can be scheduled for a
given number of teams, and explains why not.

Every infeasible result carries at least one actionable recommendation.  A
feasible result with warnings also lists fully specified alternative
configurations, so the admin can pick one instead of guessing.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Mapping

from kickoff.errors import InfeasibleConfigurationError
from kickoff.fixtures.groups import group_name, group_sizes

MIN_TEAMS = 4
GROUP_SIZES = (3, 4, 5)
MAX_ALTERNATIVES = 3


@dataclass
class AlternativeFormat:
    format: str
    options: dict[str, Any]
    description: str
    advantages: list[str] = field(default_factory=list)


@dataclass
class AnalysisResult:
    feasible: bool
    warnings: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    alternatives: list[AlternativeFormat] = field(default_factory=list)


def recommended_swiss_rounds(team_count: int) -> int:
    """min(ceil(log2 n) + 1, n - 1): enough rounds to separate the field, no forced rematches."""
    if team_count < 2:
        return 0
    return min(math.ceil(math.log2(team_count)) + 1, team_count - 1)


def analyze(
    team_count: int,
    format: str,
    options: Mapping[str, Any] | None = None,
) -> AnalysisResult:
    """Check a format/options pair for ``team_count`` teams."""
    options = dict(options or {})
    result = _check(team_count, format, options)
    if result.feasible and not result.warnings:
        return result
    if team_count >= MIN_TEAMS:
        result.alternatives = _alternatives(team_count, format, options)
    return result


def require_feasible(
    team_count: int,
    format: str,
    options: Mapping[str, Any] | None = None,
) -> AnalysisResult:
    """analyze(), raising InfeasibleConfigurationError on a rejected format."""
    result = analyze(team_count, format, options)
    if not result.feasible:
        raise InfeasibleConfigurationError(result)
    return result


def match_count(team_count: int, format: str, options: Mapping[str, Any]) -> int:
    """Number of matches before the knockout phase."""
    if format == "groups":
        games = options.get("max_games_per_team")
        total = 0
        for size in group_sizes(team_count, int(options.get("group_size", 4))):
            k = size - 1 if games is None else min(games, size - 1)
            total += size * k // 2
        return total
    if format == "league":
        k = options.get("max_games_per_team")
        k = team_count - 1 if k is None else k
        return team_count * k // 2
    if format == "swiss":
        rounds = swiss_rounds_option(team_count, options)
        return rounds * (team_count // 2)
    return 0


def swiss_rounds_option(team_count: int, options: Mapping[str, Any]) -> int:
    rounds = options.get("rounds", options.get("swiss_rounds"))
    return recommended_swiss_rounds(team_count) if rounds is None else int(rounds)


# --------------------------------------------------------------------------- #
# Per-format checks                                                            #
# --------------------------------------------------------------------------- #

def _check(team_count: int, format: str, options: dict[str, Any]) -> AnalysisResult:
    if team_count < MIN_TEAMS:
        missing = MIN_TEAMS - team_count
        return AnalysisResult(
            feasible=False,
            warnings=[f"At least {MIN_TEAMS} teams are required (currently {team_count})"],
            recommendations=[f"Register at least {missing} more team(s)"],
        )
    match format:
        case "groups":
            return _check_groups(team_count, options)
        case "league":
            return _check_league(team_count, options)
        case "swiss":
            return _check_swiss(team_count, options)
        case _:
            return AnalysisResult(
                feasible=False,
                warnings=[f"Unknown tournament format: {format!r}"],
                recommendations=["Choose one of: groups, swiss, league"],
            )


def _check_groups(team_count: int, options: dict[str, Any]) -> AnalysisResult:
    size = int(options.get("group_size", 4))
    games = options.get("max_games_per_team")
    result = AnalysisResult(feasible=True)

    if size not in GROUP_SIZES:
        result.feasible = False
        result.warnings.append(f"Group size must be 3, 4 or 5 (got {size})")
        result.recommendations.append("Use group size 4")
        return result

    sizes = group_sizes(team_count, size)
    for index, members in enumerate(sizes):
        if members < 2:
            result.feasible = False
            result.warnings.append(f"{group_name(index)} would have only {members} team")
        elif members < 3:
            result.warnings.append(
                f"{group_name(index)} has only {members} teams"
            )
    if not result.feasible:
        result.recommendations.extend(_group_size_recommendations(team_count, games, size))
        return result

    if games is None:
        if len(set(sizes)) > 1:
            result.warnings.append(
                f"Teams in smaller groups play fewer games "
                f"({min(sizes) - 1} instead of {max(sizes) - 1})"
            )
        return result

    games = int(games)
    if games < 1:
        result.feasible = False
        result.warnings.append("Max games per team must be at least 1")
        result.recommendations.append("Remove the games-per-team limit (everyone plays everyone)")
        return result
    if games > size - 1:
        result.feasible = False
        result.warnings.append(
            f"With {size} teams per group a team can play at most {size - 1} games"
        )
        result.recommendations.append(f"Reduce max games per team to {size - 1}")
        result.recommendations.append("Remove the games-per-team limit (everyone plays everyone)")
        return result

    for index, members in enumerate(sizes):
        if (members * games) % 2:
            result.feasible = False
            result.warnings.append(
                f"{group_name(index)}: {members} teams cannot each play {games} games "
                f"({members}·{games} is odd)"
            )
        elif games > members - 1:
            result.warnings.append(
                f"{group_name(index)} has only {members} teams and plays a full round "
                f"robin ({members - 1} games per team)"
            )

    if not result.feasible:
        for k in (games - 1, games + 1):
            if 1 <= k <= size - 1 and all((m * k) % 2 == 0 for m in sizes):
                verb = "Reduce" if k < games else "Increase"
                result.recommendations.append(f"{verb} max games per team to {k}")
        result.recommendations.extend(_group_size_recommendations(team_count, games, size))
        result.recommendations.append("Remove the games-per-team limit (everyone plays everyone)")
    return result


def _group_size_recommendations(team_count: int, games: int | None, current: int) -> list[str]:
    recs = []
    for size in GROUP_SIZES:
        if size == current:
            continue
        sizes = group_sizes(team_count, size)
        if min(sizes) < 2:
            continue
        if games is not None:
            if games > size - 1 or any((m * games) % 2 for m in sizes):
                continue
        recs.append(f"Use group size {size}")
    return recs


def _check_league(team_count: int, options: dict[str, Any]) -> AnalysisResult:
    games = options.get("max_games_per_team")
    result = AnalysisResult(feasible=True)
    if games is None:
        return result

    games = int(games)
    if games < 1 or games > team_count - 1:
        result.feasible = False
        result.warnings.append(
            f"Games per team must be between 1 and {team_count - 1} (got {games})"
        )
        result.recommendations.append(f"Set games per team to {team_count - 1} (everyone plays everyone)")
        return result
    if (team_count * games) % 2:
        result.feasible = False
        result.warnings.append(
            f"{team_count} teams cannot each play {games} games ({team_count}·{games} is odd)"
        )
        for k in (games - 1, games + 1):
            if 1 <= k <= team_count - 1 and (team_count * k) % 2 == 0:
                verb = "Reduce" if k < games else "Increase"
                result.recommendations.append(f"{verb} games per team to {k}")
    return result


def _check_swiss(team_count: int, options: dict[str, Any]) -> AnalysisResult:
    rounds = swiss_rounds_option(team_count, options)
    recommended = recommended_swiss_rounds(team_count)
    result = AnalysisResult(feasible=True)

    if rounds < 1 or rounds > team_count - 1:
        result.feasible = False
        result.warnings.append(
            f"{rounds} rounds are not possible for {team_count} teams "
            f"(1 to {team_count - 1} rounds without rematches)"
        )
        result.recommendations.append(f"Use {recommended} rounds")
        return result

    if rounds != recommended:
        result.warnings.append(
            f"Recommended for {team_count} teams: {recommended} rounds (configured {rounds})"
        )
    if team_count % 2:
        result.warnings.append("Odd number of teams: one team gets a bye every round")
    return result


# --------------------------------------------------------------------------- #
# Alternatives                                                                 #
# --------------------------------------------------------------------------- #

def _alternatives(team_count: int, format: str, options: dict[str, Any]) -> list[AlternativeFormat]:
    candidates: list[tuple[str, dict[str, Any]]] = []
    for size in GROUP_SIZES:
        candidates.append(("groups", {"group_size": size, "max_games_per_team": None}))
    candidates.append(("swiss", {"rounds": recommended_swiss_rounds(team_count)}))
    candidates.append(("league", {"max_games_per_team": None}))
    for k in (3, 4, 5):
        if k < team_count - 1:
            candidates.append(("league", {"max_games_per_team": k}))

    current = (format, _normalise(format, options))
    alternatives: list[AlternativeFormat] = []
    for alt_format, alt_options in candidates:
        if (alt_format, alt_options) == current:
            continue
        check = _check(team_count, alt_format, alt_options)
        if not check.feasible or check.warnings:
            continue
        alternatives.append(_describe(team_count, alt_format, alt_options))
        if len(alternatives) == MAX_ALTERNATIVES:
            break
    return alternatives


def _normalise(format: str, options: dict[str, Any]) -> dict[str, Any]:
    if format == "groups":
        return {
            "group_size": int(options.get("group_size", 4)),
            "max_games_per_team": options.get("max_games_per_team"),
        }
    if format == "swiss":
        return {"rounds": options.get("rounds", options.get("swiss_rounds"))}
    return {"max_games_per_team": options.get("max_games_per_team")}


def _describe(team_count: int, format: str, options: dict[str, Any]) -> AlternativeFormat:
    matches = match_count(team_count, format, options)
    if format == "groups":
        sizes = group_sizes(team_count, options["group_size"])
        description = f"{len(sizes)} groups of {options['group_size']} teams"
        advantages = [
            f"All groups have {sizes[0]} teams",
            f"Every team plays {sizes[0] - 1} group games",
            f"{matches} matches in total",
        ]
    elif format == "swiss":
        rounds = options["rounds"]
        description = f"Swiss system with {rounds} rounds"
        advantages = [
            "Teams of similar strength meet each other",
            f"Every team plays {rounds} games",
            f"{matches} matches in total",
        ]
    else:
        k = options["max_games_per_team"]
        games = team_count - 1 if k is None else k
        description = (
            "League, everyone plays everyone" if k is None
            else f"League with {k} games per team"
        )
        advantages = [
            "One table for all teams",
            f"Every team plays {games} games",
            f"{matches} matches in total",
        ]
    return AlternativeFormat(format=format, options=dict(options), description=description, advantages=advantages)
