"""
Rich-based CLI rendering for analysis results, group tables, fixtures and
the live match clock.

display_event() is the counterpart of the /ws/live feed: it prints a one-line
summary per TournamentEvent so a terminal can follow the tournament.
"""

from __future__ import annotations

from typing import Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from kickoff.clock import MatchTime
from kickoff.events import (
    FixturesGeneratedEvent,
    HalftimeStartedEvent,
    LiveScoreUpdateEvent,
    MatchAbortedEvent,
    MatchFinishedEvent,
    MatchPausedEvent,
    MatchResultAddedEvent,
    MatchResumedEvent,
    MatchStartedEvent,
    SecondHalfStartedEvent,
    TeamsUpdatedEvent,
    TournamentEvent,
    TournamentUpdatedEvent,
)
from kickoff.fixtures import AnalysisResult
from kickoff.models import Group, Match, Tournament

console = Console(legacy_windows=False)


# --------------------------------------------------------------------------- #
# Analysis                                                                     #
# --------------------------------------------------------------------------- #

def display_analysis(team_count: int, format: str, result: AnalysisResult) -> None:
    verdict = "[bold green]feasible[/]" if result.feasible else "[bold red]not feasible[/]"
    lines = [f"[bold]{format}[/] with {team_count} teams: {verdict}"]
    if result.warnings:
        lines.append("")
        lines.extend(f"[yellow]![/] {w}" for w in result.warnings)
    if result.recommendations:
        lines.append("")
        lines.extend(f"[cyan]→[/] {r}" for r in result.recommendations)

    console.print()
    console.print(
        Panel(
            "\n".join(lines),
            title="[bold] Format analysis [/]",
            border_style="green" if result.feasible else "red",
            expand=False,
        )
    )

    if not result.alternatives:
        return
    table = Table(title="Alternatives", show_header=True, header_style="bold", border_style="dim")
    table.add_column("Format", min_width=8)
    table.add_column("Options")
    table.add_column("Description", min_width=30)
    table.add_column("Advantages")
    for alt in result.alternatives:
        options = ", ".join(f"{k}={v}" for k, v in alt.options.items()) or "-"
        table.add_row(alt.format, options, alt.description, "\n".join(alt.advantages))
    console.print(table)


# --------------------------------------------------------------------------- #
# Tournament state                                                             #
# --------------------------------------------------------------------------- #

def display_tournament(tournament: Tournament | None, team_count: int) -> None:
    if tournament is None:
        console.print("[dim]No tournament has been created yet.[/]")
        return
    config = tournament.config
    fmt = config.format if config else "-"
    console.print(
        Panel(
            f"[bold]Tournament {tournament.year}[/]\n\n"
            f"[dim]Status:[/] {tournament.status}  •  "
            f"[dim]Format:[/] {fmt}  •  "
            f"[dim]Teams:[/] {team_count}",
            border_style="green",
            expand=False,
        )
    )


def display_group_tables(groups: Sequence[Group]) -> None:
    for group in groups:
        table = Table(
            title=group.name,
            show_header=True,
            header_style="bold",
            border_style="dim",
            show_lines=False,
        )
        table.add_column("#", style="dim", width=3, justify="right")
        table.add_column("Team", min_width=20)
        table.add_column("P", justify="center", width=4)
        table.add_column("W", justify="center", width=4)
        table.add_column("D", justify="center", width=4)
        table.add_column("L", justify="center", width=4)
        table.add_column("Goals", justify="center", width=7)
        table.add_column("+/-", justify="right", width=5)
        table.add_column("Pts", justify="right", width=5)

        for i, row in enumerate(group.table, 1):
            table.add_row(
                str(i),
                row.team + (" [dim](pen)[/]" if row.penalty_wins else ""),
                str(row.games),
                str(row.wins),
                str(row.draws),
                str(row.losses),
                f"{row.goals_for}:{row.goals_against}",
                f"{row.goal_diff:+d}",
                str(row.points),
                style="bold" if i == 1 else "",
            )
        console.print()
        console.print(table)


def display_fixtures(matches: Sequence[Match]) -> None:
    table = Table(title="Fixtures", show_header=True, header_style="bold", border_style="dim")
    table.add_column("Match", style="dim", min_width=10)
    table.add_column("When", width=16)
    table.add_column("Home", min_width=16)
    table.add_column("", width=7, justify="center")
    table.add_column("Away", min_width=16)
    table.add_column("Referee", style="dim")

    for m in matches:
        when = m.scheduled.datetime.strftime("%Y-%m-%d %H:%M") if m.scheduled else "-"
        if m.is_bye:
            table.add_row(m.label or m.id, when, f"[bold]{m.team1}[/]", "→", "[dim]BYE[/]", "")
            continue
        if m.completed:
            score = f"{m.score1}:{m.score2}"
            if m.penalty_score1 is not None:
                score += f" [dim]({m.penalty_score1}:{m.penalty_score2})[/]"
        elif m.live is not None:
            score = f"[red]{m.live.score1}:{m.live.score2}[/]"
        else:
            score = "vs"
        table.add_row(
            m.label or m.id,
            when,
            m.team1 or f"[dim]{m.team1_source}[/]",
            score,
            m.team2 or f"[dim]{m.team2_source}[/]",
            m.referee.team if m.referee else "",
        )
    console.print()
    console.print(table)


def display_live(match: Match | None, time: MatchTime | None) -> None:
    if match is None or match.live is None or time is None:
        console.print("[dim]No match is live.[/]")
        return
    live = match.live
    console.print(
        Panel(
            f"[bold]{match.team1}[/]  [bold yellow]{live.score1} : {live.score2}[/]  "
            f"[bold]{match.team2}[/]\n\n"
            f"[bold]{time.display}[/]  [dim]{time.label}[/]",
            title=f"[bold red] LIVE · {match.label or match.id} [/]",
            border_style="red",
            expand=False,
        )
    )


# --------------------------------------------------------------------------- #
# Events                                                                       #
# --------------------------------------------------------------------------- #

def display_event(event: TournamentEvent) -> None:
    """Print a one-line summary of a TournamentEvent."""
    stamp = f"[dim]{event.timestamp.strftime('%H:%M:%S')}[/]"
    match event:
        case MatchStartedEvent():
            console.print(f"{stamp} [green]▶[/] Kick-off {_pairing(event.match)}")
        case MatchPausedEvent():
            console.print(f"{stamp} [yellow]⏸[/] Paused {_pairing(event.match)}")
        case MatchResumedEvent():
            console.print(f"{stamp} [green]▶[/] Resumed {_pairing(event.match)}")
        case HalftimeStartedEvent():
            console.print(f"{stamp} Halftime {_pairing(event.match)}")
        case SecondHalfStartedEvent():
            console.print(f"{stamp} [green]▶[/] Second half {_pairing(event.match)}")
        case LiveScoreUpdateEvent():
            live = event.match.live
            score = f"{live.score1}:{live.score2}" if live else "-"
            console.print(f"{stamp} {event.time.display} {_pairing(event.match)} {score}")
        case MatchFinishedEvent() | MatchResultAddedEvent():
            m = event.match
            console.print(f"{stamp} [bold]FT[/] {m.team1} {m.score1}:{m.score2} {m.team2}")
        case MatchAbortedEvent():
            console.print(f"{stamp} [red]✗[/] Aborted {_pairing(event.match)}")
        case FixturesGeneratedEvent():
            console.print(f"{stamp} Fixtures ({event.reason}): {len(event.matches)} matches")
        case TournamentUpdatedEvent():
            console.print(f"{stamp} Tournament updated ({event.reason})")
        case TeamsUpdatedEvent():
            console.print(f"{stamp} Teams {event.reason}: {len(event.teams)} registered")


def _pairing(match: Match) -> str:
    return f"[bold]{match.team1}[/] vs [bold]{match.team2}[/]"
