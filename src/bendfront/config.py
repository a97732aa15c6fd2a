"""TOML config loading for bendfront.toml."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

CONFIG_NAME = "bendfront.toml"


class WarningState(Enum):
    ALLOW = "allow"
    WARN = "warn"
    DENY = "deny"


class CheckMode(Enum):
    BATCH = "batch"
    FAIL_FAST = "fail-fast"


@dataclass
class CheckConfig:
    mode: CheckMode = CheckMode.BATCH
    jobs: int = 1


@dataclass
class WarningConfig:
    unused_defs: WarningState = WarningState.WARN
    match_only_vars: WarningState = WarningState.WARN

    def set_all(self, state: WarningState) -> None:
        self.unused_defs = state
        self.match_only_vars = state


@dataclass
class BendfrontConfig:
    check: CheckConfig = field(default_factory=CheckConfig)
    warnings: WarningConfig = field(default_factory=WarningConfig)


def find_config(start_path: Path | None = None) -> Path | None:
    """Walk up directories to find bendfront.toml. Returns None if there is none."""
    path = (start_path or Path.cwd()).resolve()
    if path.is_file():
        path = path.parent
    while True:
        candidate = path / CONFIG_NAME
        if candidate.exists():
            return candidate
        parent = path.parent
        if parent == path:
            return None
        path = parent


def _enum_value(enum: type[Enum], raw: object, key: str) -> Enum:
    try:
        return enum(raw)
    except ValueError:
        allowed = ", ".join(repr(m.value) for m in enum)
        raise ValueError(f"invalid value {raw!r} for {key}: expected one of {allowed}") from None


def load_config(path: Path | None) -> BendfrontConfig:
    """Parse a bendfront.toml file into a BendfrontConfig; None gives the defaults."""
    config = BendfrontConfig()
    if path is None:
        return config

    with open(path, "rb") as f:
        data = tomllib.load(f)

    if "check" in data:
        chk = data["check"]
        jobs = chk.get("jobs", 1)
        if not isinstance(jobs, int) or jobs < 1:
            raise ValueError(f"invalid value {jobs!r} for check.jobs: expected a positive integer")
        config.check = CheckConfig(
            mode=_enum_value(CheckMode, chk.get("mode", "batch"), "check.mode"),
            jobs=jobs,
        )

    if "warnings" in data:
        wrn = data["warnings"]
        config.warnings = WarningConfig(
            unused_defs=_enum_value(WarningState, wrn.get("unused_defs", "warn"),
                                    "warnings.unused_defs"),
            match_only_vars=_enum_value(WarningState, wrn.get("match_only_vars", "warn"),
                                        "warnings.match_only_vars"),
        )

    return config
