"""
Kickoff: command-line entry point.

Usage:
    python main.py analyze 10 groups --group-size 4 --max-games 3
    python main.py analyze 9 swiss
    python main.py show [--year 2026]
    python main.py demo 8 groups --seed 7

Wires together:  config → store → orchestrator → rich display
"""

from __future__ import annotations

import argparse
import random
import sys
from pathlib import Path

from kickoff.cli.display import (
    console,
    display_analysis,
    display_event,
    display_fixtures,
    display_group_tables,
    display_live,
    display_tournament,
)
from kickoff.config import Config, load_config
from kickoff.errors import InfeasibleConfigurationError
from kickoff.models import FORMATS, KNOCKOUT_PHASES
from kickoff.orchestrator import TournamentOrchestrator
from kickoff.store import TournamentStore


def _load_config(path: Path) -> Config:
    try:
        return load_config(path)
    except FileNotFoundError as exc:
        console.print(f"[red]Error:[/] {exc}")
        sys.exit(1)
    except ValueError as exc:
        console.print(f"[red]Config error:[/] {exc}")
        sys.exit(1)


def _analyze(args: argparse.Namespace, config: Config) -> int:
    options: dict[str, object] = {"group_size": args.group_size or config.tournament.group_size}
    if args.max_games is not None:
        options["max_games_per_team"] = args.max_games
    if args.rounds is not None:
        options["rounds"] = args.rounds

    orchestrator = TournamentOrchestrator(defaults=config.tournament)
    result = orchestrator.analyze_config(args.teams, args.format, options)
    display_analysis(args.teams, args.format, result)
    return 0 if result.feasible else 2


def _show(args: argparse.Namespace, config: Config) -> int:
    store = TournamentStore(config.data_dir_path)
    state = store.load(args.year)
    if state is None:
        console.print(f"[yellow]No saved tournament in {config.data_dir_path}[/]")
        return 1

    orchestrator = TournamentOrchestrator(state, defaults=config.tournament)
    display_tournament(orchestrator.tournament, len(orchestrator.teams))
    display_group_tables(orchestrator.group_tables())
    display_fixtures(orchestrator.matches)
    console.print()
    display_live(orchestrator.live_match(), orchestrator.live_time())
    return 0


def _demo(args: argparse.Namespace, config: Config) -> int:
    """Play a whole tournament in memory with random scores, printing every event."""
    rng = random.Random(args.seed)
    orchestrator = TournamentOrchestrator(
        defaults=config.tournament,
        publish=lambda name, event: display_event(event),
    )
    orchestrator.create_tournament()
    for i in range(1, args.teams + 1):
        orchestrator.register_team(f"Team {i}")

    try:
        orchestrator.close_registration(args.format, {})
    except InfeasibleConfigurationError as exc:
        display_analysis(args.teams, args.format, exc.analysis)
        return 2

    _play_open_matches(orchestrator, rng)
    if args.format == "swiss":
        rounds = orchestrator.tournament.config.swiss_rounds or 0
        for _ in range(1, rounds):
            orchestrator.generate_next_swiss_round()
            _play_open_matches(orchestrator, rng)

    orchestrator.generate_penalty_shootouts()
    _play_open_matches(orchestrator, rng)
    orchestrator.generate_knockout()
    _play_open_matches(orchestrator, rng)

    display_group_tables(orchestrator.group_tables())
    display_fixtures(orchestrator.matches)
    return 0


def _play_open_matches(orchestrator: TournamentOrchestrator, rng: random.Random) -> None:
    # Knockout slots fill as earlier rounds finish, so keep going until none is left.
    while True:
        ready = [m for m in orchestrator.matches if m.is_ready and not m.completed]
        if not ready:
            return
        for m in ready:
            s1, s2 = rng.randint(0, 4), rng.randint(0, 4)
            p1 = p2 = None
            if m.is_penalty_shootout and s1 == s2:
                s1 += 1
            elif m.phase in KNOCKOUT_PHASES and s1 == s2:
                p1, p2 = rng.choice([(5, 4), (4, 5), (3, 2)])
            orchestrator.enter_result(m.id, s1, s2, p1, p2)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="kickoff", description="Football tournament organiser")
    parser.add_argument("--config", type=Path, default=Path("config.yaml"))
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="check whether a format fits a team count")
    analyze.add_argument("teams", type=int)
    analyze.add_argument("format", choices=FORMATS)
    analyze.add_argument("--group-size", type=int, choices=(3, 4, 5))
    analyze.add_argument("--max-games", type=int, help="games per team inside a group")
    analyze.add_argument("--rounds", type=int, help="Swiss rounds")

    show = sub.add_parser("show", help="print the saved tournament")
    show.add_argument("--year", type=int)

    demo = sub.add_parser("demo", help="simulate a tournament with random results")
    demo.add_argument("teams", type=int)
    demo.add_argument("format", choices=FORMATS)
    demo.add_argument("--seed", type=int, default=None)

    args = parser.parse_args(argv)
    config = _load_config(args.config)
    match args.command:
        case "analyze":
            return _analyze(args, config)
        case "show":
            return _show(args, config)
        case "demo":
            return _demo(args, config)
    return 1


if __name__ == "__main__":
    sys.exit(main())
