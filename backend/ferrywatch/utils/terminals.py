"""Immutable terminal / vessel lookup shared by the orchestrator and pipeline.

Built once at startup with ``build_terminal_lookup()`` and passed explicitly
to the components that need it. An optional YAML file (path in
``settings.TERMINAL_OVERRIDES_CONFIG``) can add names without a code change::

    terminal_names:
      "Seattle Terminal": P52
    vessel_abbrevs:
      Sealth: SEA
    mean_at_dock_minutes:
      "P52->BBI": 21.0
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional

import yaml

from ferrywatch.utils import terminal_table

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TerminalLookup:
    valid_terminals: frozenset[str]
    terminal_names: Mapping[str, str]
    vessel_abbrevs: Mapping[str, str]
    mean_at_dock_minutes: Mapping[str, float] = field(default_factory=lambda: MappingProxyType({}))

    def is_valid_terminal(self, abbrev: Optional[str]) -> bool:
        return abbrev is not None and abbrev in self.valid_terminals

    def terminal_abbrev(self, name: Optional[str]) -> Optional[str]:
        """Map a terminal name from the history feed to its abbreviation.

        Matches exactly first, then case-insensitively. An input that is
        already a valid abbreviation is returned unchanged. Returns None for
        unknown names.
        """
        if not name:
            return None
        name = name.strip()
        if name in self.terminal_names:
            return self.terminal_names[name]
        if name in self.valid_terminals:
            return name
        folded = name.casefold()
        for known, abbrev in self.terminal_names.items():
            if known.casefold() == folded:
                return abbrev
        return None

    def vessel_abbrev(self, vessel_name: str) -> str:
        """Vessel abbreviation; unknown vessels get their first three letters."""
        name = (vessel_name or "").strip()
        if name in self.vessel_abbrevs:
            return self.vessel_abbrevs[name]
        for known, abbrev in self.vessel_abbrevs.items():
            if known.casefold() == name.casefold():
                return abbrev
        return name.replace(" ", "")[:3].upper()

    def mean_at_dock(self, departing: str, arriving: str) -> Optional[float]:
        return self.mean_at_dock_minutes.get(f"{departing}->{arriving}")


def build_terminal_lookup(overrides_path: str | Path | None = None) -> TerminalLookup:
    terminal_names = dict(terminal_table.TERMINAL_NAME_TO_ABBREV)
    vessel_abbrevs = dict(terminal_table.VESSEL_NAME_TO_ABBREV)
    mean_at_dock = dict(terminal_table.MEAN_AT_DOCK_MINUTES)

    if overrides_path:
        path = Path(overrides_path)
        if not path.exists():
            logger.warning("Terminal overrides file not found at %s; using built-in tables", path)
        else:
            with open(path) as f:
                overrides = yaml.safe_load(f) or {}
            for name, abbrev in (overrides.get("terminal_names") or {}).items():
                if abbrev not in terminal_table.VALID_TERMINALS:
                    raise ValueError(f"terminal override {name!r} maps to unknown terminal {abbrev!r}")
                terminal_names[str(name)] = abbrev
            vessel_abbrevs.update(
                {str(k): str(v) for k, v in (overrides.get("vessel_abbrevs") or {}).items()}
            )
            mean_at_dock.update(
                {str(k): float(v) for k, v in (overrides.get("mean_at_dock_minutes") or {}).items()}
            )
            logger.info("Loaded terminal overrides from %s", path)

    return TerminalLookup(
        valid_terminals=terminal_table.VALID_TERMINALS,
        terminal_names=MappingProxyType(terminal_names),
        vessel_abbrevs=MappingProxyType(vessel_abbrevs),
        mean_at_dock_minutes=MappingProxyType(mean_at_dock),
    )
