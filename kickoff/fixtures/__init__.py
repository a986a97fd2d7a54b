"""
Fixture & format engine.

generate_fixtures() is the single entry point for building the pre-knockout
fixture list of any format; build_config() turns the admin's raw options into
a TournamentConfig.

To add a new format:
  1. Create kickoff/fixtures/<name>.py returning (groups, matches)
  2. Add a check in analyzer.py and a case here
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from kickoff.fixtures.analyzer import (
    AlternativeFormat,
    AnalysisResult,
    analyze,
    match_count,
    recommended_swiss_rounds,
    require_feasible,
    swiss_rounds_option,
)
from kickoff.fixtures.groups import (
    generate_group_stage,
    generate_league,
    group_sizes,
    partition_groups,
    regular_pairings,
    round_robin_rounds,
)
from kickoff.fixtures.knockout import advance_bracket, effective_options, generate_knockout
from kickoff.fixtures.penalties import find_tied_clusters, generate_penalty_shootouts
from kickoff.fixtures.scheduling import assign_referees, schedule_all
from kickoff.fixtures.swiss import generate_swiss_round, generate_swiss_stage, swiss_order
from kickoff.models import FORMATS, Group, KnockoutOptions, Match, TournamentConfig

__all__ = [
    # Analysis
    "AlternativeFormat",
    "AnalysisResult",
    "analyze",
    "match_count",
    "recommended_swiss_rounds",
    "require_feasible",
    # Generators
    "generate_group_stage",
    "generate_league",
    "generate_swiss_stage",
    "generate_swiss_round",
    "generate_knockout",
    "generate_penalty_shootouts",
    "advance_bracket",
    "effective_options",
    "find_tied_clusters",
    "group_sizes",
    "partition_groups",
    "regular_pairings",
    "round_robin_rounds",
    "swiss_order",
    # Scheduling
    "assign_referees",
    "schedule_all",
    # Factory
    "build_config",
    "knockout_options",
    "generate_fixtures",
]


def knockout_options(options: Mapping[str, Any]) -> KnockoutOptions:
    """Read knockout toggles; accepts both "third_place" and "enable_third_place" keys."""

    def flag(name: str) -> bool:
        return bool(options.get(name, options.get(f"enable_{name}", False)))

    return KnockoutOptions(
        quarterfinals=flag("quarterfinals"),
        third_place=flag("third_place"),
        fifth_place=flag("fifth_place"),
        seventh_place=flag("seventh_place"),
    )


def build_config(
    team_count: int,
    format: str,
    options: Mapping[str, Any] | None = None,
    half_time_minutes: int = 10,
) -> TournamentConfig:
    """
    Validate and build a TournamentConfig.

    Raises:
        InfeasibleConfigurationError: the analyzer rejects the format.
    """
    options = dict(options or {})
    require_feasible(team_count, format, options)

    games = options.get("max_games_per_team")
    seed = options.get("shuffle_seed")
    return TournamentConfig(
        format=format,
        group_size=int(options.get("group_size", 4)),
        max_games_per_team=None if games is None else int(games),
        swiss_rounds=swiss_rounds_option(team_count, options) if format == "swiss" else None,
        knockout=knockout_options(options),
        half_time_minutes=int(options.get("half_time_minutes", half_time_minutes)),
        shuffle_seed=None if seed is None else int(seed),
    )


def generate_fixtures(
    teams: Sequence[str],
    config: TournamentConfig,
) -> tuple[list[Group], list[Match]]:
    """Groups and pre-knockout matches for ``config.format``."""
    match config.format:
        case "groups":
            return generate_group_stage(teams, config)
        case "league":
            return generate_league(teams, config)
        case "swiss":
            return generate_swiss_stage(teams, config)
        case _:
            raise ValueError(
                f"Unknown tournament format: {config.format!r}. "
                f"Valid formats: {', '.join(FORMATS)}"
            )
