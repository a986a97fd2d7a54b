"""
Knock-out bracket seeded from the final table.

Rules:
- Quarterfinals (only with 8+ teams): 1v8, 2v7, 3v6, 4v5.  The winners of
  QF-1/QF-4 and QF-2/QF-3 meet in the semifinals, so seeds 1 and 2 can only
  meet in the final.
- Without quarterfinals: semifinals 1v4 and 2v3 (4+ teams).  With only 2 or
  3 teams the top two play the final directly.
- Exactly one final.
- Placement games: 3rd (semifinal losers), 5th and 7th.  Without
  quarterfinals these are seeds 5v6 and 7v8; with quarterfinals the four
  quarterfinal losers are ranked by seed, the best two play for 5th and the
  other two for 7th.
- A toggle whose team-count precondition fails is silently switched off.

Slots whose team depends on an earlier result carry a source descriptor
("winner:QF-1", "loser:SF-2", "qf_loser:3") and are filled by
advance_bracket() once that result is in.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Sequence

from kickoff.models import KNOCKOUT_PHASES, KnockoutOptions, Match, MatchPhase

logger = logging.getLogger(__name__)

QUARTERFINAL_SEEDS = ((1, 8), (2, 7), (3, 6), (4, 5))


def effective_options(team_count: int, options: KnockoutOptions) -> KnockoutOptions:
    """The requested toggles with every unmet precondition switched off."""
    semifinals = team_count >= 4
    return replace(
        options,
        quarterfinals=options.quarterfinals and team_count >= 8,
        third_place=options.third_place and team_count >= 3 and semifinals,
        fifth_place=options.fifth_place and team_count >= 6,
        seventh_place=options.seventh_place and team_count >= 8,
    )


def generate_knockout(final_table: Sequence[str], options: KnockoutOptions) -> list[Match]:
    """
    Build the bracket for the ranked ``final_table`` (best team first).

    Raises:
        ValueError: fewer than 2 teams.
    """
    n = len(final_table)
    if n < 2:
        raise ValueError("Knockout phase requires at least 2 teams.")
    opts = effective_options(n, options)
    if opts != options:
        logger.info("Knockout options reduced for %d teams: %s", n, opts)

    def seed(number: int) -> str:
        return final_table[number - 1]

    matches: list[Match] = []
    semifinal_round = 1
    if opts.quarterfinals:
        for i, (a, b) in enumerate(QUARTERFINAL_SEEDS, 1):
            matches.append(_fixed(f"QF-{i}", seed(a), seed(b), "knockout", 1, f"Quarterfinal {i}"))
        matches.append(_pending("SF-1", "winner:QF-1", "winner:QF-4", "knockout", 2, "Semifinal 1"))
        matches.append(_pending("SF-2", "winner:QF-2", "winner:QF-3", "knockout", 2, "Semifinal 2"))
        semifinal_round = 2
    elif n >= 4:
        matches.append(_fixed("SF-1", seed(1), seed(4), "knockout", 1, "Semifinal 1"))
        matches.append(_fixed("SF-2", seed(2), seed(3), "knockout", 1, "Semifinal 2"))

    has_semifinals = n >= 4
    final_round = semifinal_round + 1 if has_semifinals else 1

    if opts.seventh_place:
        if opts.quarterfinals:
            matches.append(_pending("P7", "qf_loser:3", "qf_loser:4", "placement", final_round, "7th place"))
        else:
            matches.append(_fixed("P7", seed(7), seed(8), "placement", final_round, "7th place"))
    if opts.fifth_place:
        if opts.quarterfinals:
            matches.append(_pending("P5", "qf_loser:1", "qf_loser:2", "placement", final_round, "5th place"))
        else:
            matches.append(_fixed("P5", seed(5), seed(6), "placement", final_round, "5th place"))
    if opts.third_place:
        matches.append(_pending("P3", "loser:SF-1", "loser:SF-2", "placement", final_round, "3rd place"))

    if has_semifinals:
        matches.append(_pending("F", "winner:SF-1", "winner:SF-2", "knockout", final_round, "Final"))
    else:
        matches.append(_fixed("F", seed(1), seed(2), "knockout", final_round, "Final"))
    return matches


def advance_bracket(matches: Sequence[Match], final_table: Sequence[str]) -> list[Match]:
    """
    Fill knockout slots from completed results.

    Only matches that are neither completed nor live are touched, and their
    slots are recomputed from scratch, so a corrected or reset result also
    corrects (or empties) the slots that depended on it.  Returns the matches
    whose teams changed.
    """
    by_id = {m.id: m for m in matches}
    seeds = {team: i for i, team in enumerate(final_table)}
    changed: list[Match] = []
    for match in matches:
        if match.phase not in KNOCKOUT_PHASES or match.completed or match.live is not None:
            continue
        before = match.teams
        if match.team1_source is not None:
            match.team1 = _resolve(match.team1_source, by_id, seeds)
        if match.team2_source is not None:
            match.team2 = _resolve(match.team2_source, by_id, seeds)
        if match.teams != before:
            changed.append(match)
    return changed


# --------------------------------------------------------------------------- #
# Helpers                                                                      #
# --------------------------------------------------------------------------- #

def _fixed(match_id: str, team1: str, team2: str, phase: MatchPhase, round_num: int, label: str) -> Match:
    return Match(id=match_id, team1=team1, team2=team2, phase=phase, round=round_num, label=label)


def _pending(match_id: str, source1: str, source2: str, phase: MatchPhase, round_num: int, label: str) -> Match:
    return Match(
        id=match_id,
        team1=None,
        team2=None,
        phase=phase,
        round=round_num,
        label=label,
        team1_source=source1,
        team2_source=source2,
    )


def _resolve(source: str, by_id: dict[str, Match], seeds: dict[str, int]) -> str | None:
    kind, _, ref = source.partition(":")
    if kind in ("winner", "loser"):
        upstream = by_id.get(ref)
        if upstream is None:
            return None
        return upstream.winner() if kind == "winner" else upstream.loser()
    if kind == "qf_loser":
        quarterfinals = [by_id.get(f"QF-{i}") for i in range(1, 5)]
        losers = [m.loser() for m in quarterfinals if m is not None]
        if len(losers) < 4 or None in losers:
            return None
        losers.sort(key=lambda team: seeds.get(team, len(seeds)))
        return losers[int(ref) - 1]
    raise ValueError(f"Unknown bracket slot source: {source!r}")
