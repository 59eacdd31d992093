"""Recognizer configuration (board_config.json) and debug options."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path

from fen_utils import PlayerSide
from piece_recognizer import TEMPLATE_DIR

log = logging.getLogger(__name__)

CONFIG_FILE = "board_config.json"
DEBUG_DIR = os.path.join("screenshots", "debug")

SITES = ("chesscom", "lichess", "macOS")
MODES = ("native", "llm")


@dataclass(frozen=True)
class DebugOptions:
    """Whether intermediate images are written to disk, and where."""

    enabled: bool = False
    output_dir: str = DEBUG_DIR

    def __post_init__(self):
        if not isinstance(self.enabled, bool):
            raise ValueError(f"debug.enabled must be true or false, got {self.enabled!r}")
        if not isinstance(self.output_dir, str):
            raise ValueError(f"debug.output_dir must be a string, got {self.output_dir!r}")

    @classmethod
    def from_env(cls) -> "DebugOptions":
        """Read DEBUG_CAPTURE=1 from the environment (CLI entry point only)."""
        return cls(enabled=os.environ.get("DEBUG_CAPTURE") == "1")


_FIELD_TYPES = {
    "site": str,
    "mode": str,
    "side": str,
    "template_dir": str,
    "llm_model": str,
    "llm_timeout": (int, float),
    "scan_interval": (int, float),
    "workers": int,
}


def _debug_options(value) -> DebugOptions:
    """Accept ``"debug": true`` as well as the full object form."""
    if isinstance(value, DebugOptions):
        return value
    if isinstance(value, bool):
        return DebugOptions(enabled=value)
    if isinstance(value, dict):
        unknown = set(value) - {f.name for f in fields(DebugOptions)}
        if unknown:
            raise ValueError(f"Unknown debug option(s): {', '.join(sorted(unknown))}")
        return DebugOptions(**value)
    raise ValueError(f"debug must be true, false or an object, got {value!r}")


@dataclass
class Config:
    site: str = "chesscom"
    mode: str = "native"
    side: str = "white"
    template_dir: str = TEMPLATE_DIR
    llm_model: str = "gpt-4o"
    llm_timeout: float = 30.0
    scan_interval: float = 0.5
    workers: int = 8
    debug: DebugOptions = field(default_factory=DebugOptions)

    def __post_init__(self):
        for name, expected in _FIELD_TYPES.items():
            value = getattr(self, name)
            # bool is an int subclass but never a valid count or duration
            if isinstance(value, bool) or not isinstance(value, expected):
                raise ValueError(f"{name} has the wrong type: {value!r}")
        self.debug = _debug_options(self.debug)

        if self.mode not in MODES:
            raise ValueError(f"Unknown OCR mode '{self.mode}'. Choose from: {MODES}")
        if not self.site:
            raise ValueError("site must not be empty")
        if self.llm_timeout <= 0:
            raise ValueError("llm_timeout must be positive")
        if self.scan_interval < 0:
            raise ValueError("scan_interval must not be negative")
        if self.workers < 1:
            raise ValueError("workers must be at least 1")
        # Raises ValueError for anything other than white/black/w/b
        PlayerSide.parse(self.side)

    @property
    def player_side(self) -> PlayerSide:
        return PlayerSide.parse(self.side)


def load_config(path: str | os.PathLike = CONFIG_FILE) -> Config:
    """Load the config file, falling back to defaults when it is missing."""
    config_path = Path(path)
    if not config_path.exists():
        log.info("No config at %s, using defaults", config_path)
        return Config()

    with open(config_path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    if not isinstance(raw, dict):
        raise ValueError(f"{config_path}: expected a JSON object")

    known = {f.name for f in fields(Config)}
    for key in sorted(set(raw) - known):
        log.warning("%s: ignoring unknown key '%s'", config_path, key)

    return Config(**{k: v for k, v in raw.items() if k in known})


def save_config(config: Config, path: str | os.PathLike = CONFIG_FILE) -> None:
    config_path = Path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(asdict(config), f, indent=2)
