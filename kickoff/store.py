"""Local JSON store for tournament snapshots.

One file per tournament year (tournament-<year>.json) plus a small pointer
file naming the current year.  save() is the orchestrator's persist hook.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from kickoff.models import TournamentState
from kickoff.serialization import snapshot_from_dict, snapshot_to_dict

logger = logging.getLogger(__name__)

_CURRENT = "current.json"


class TournamentStore:
    def __init__(self, data_dir: str | Path) -> None:
        self.data_dir = Path(data_dir)

    def path_for(self, year: int) -> Path:
        return self.data_dir / f"tournament-{year}.json"

    def save(self, state: TournamentState) -> None:
        if state.tournament is None:
            self._current_path().unlink(missing_ok=True)
            return
        self.data_dir.mkdir(parents=True, exist_ok=True)
        year = state.tournament.year
        path = self.path_for(year)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(snapshot_to_dict(state), indent=2), encoding="utf-8")
        tmp.replace(path)
        self._current_path().write_text(json.dumps({"year": year}), encoding="utf-8")
        logger.debug("Saved tournament %d to %s", year, path)

    def load(self, year: int | None = None) -> TournamentState | None:
        """The snapshot for ``year`` (default: the current year), or None."""
        if year is None:
            year = self.current_year()
            if year is None:
                return None
        path = self.path_for(year)
        if not path.exists():
            return None
        try:
            return snapshot_from_dict(json.loads(path.read_text(encoding="utf-8")))
        except (json.JSONDecodeError, ValueError) as exc:
            logger.warning("Ignoring unreadable snapshot %s: %s", path, exc)
            return None

    def current_year(self) -> int | None:
        path = self._current_path()
        if not path.exists():
            return None
        try:
            return int(json.loads(path.read_text(encoding="utf-8"))["year"])
        except (json.JSONDecodeError, KeyError, TypeError, ValueError):
            return None

    def years(self) -> list[int]:
        if not self.data_dir.exists():
            return []
        years = []
        for path in self.data_dir.glob("tournament-*.json"):
            suffix = path.stem.removeprefix("tournament-")
            if suffix.isdigit():
                years.append(int(suffix))
        return sorted(years)

    def _current_path(self) -> Path:
        return self.data_dir / _CURRENT
