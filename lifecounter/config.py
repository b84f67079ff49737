"""
config.py - Deployment settings

Settings come from LIFECOUNTER_* environment variables, with a .env file
loaded first if present:

    LIFECOUNTER_DATA_DIR       directory holding the ledger file (default: data)
    LIFECOUNTER_LEDGER_FILE    ledger file name (default: lives.json)
    LIFECOUNTER_PARTY_A_NAME   display name of party A
    LIFECOUNTER_PARTY_B_NAME   display name of party B
    LIFECOUNTER_VERBOSE        0/false/no to silence result boxes
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, Mapping, Optional, Callable, Union
import os

from dotenv import load_dotenv

from .core import PARTY_A, PARTY_B, DEFAULT_PARTY_NAMES
from .counter import LifeCounter
from .notifications import NotificationHub
from .store import JsonFileStore, DEFAULT_LEDGER_FILENAME


ENV_PREFIX = "LIFECOUNTER_"

_FALSE_VALUES = frozenset({"0", "false", "no", "off", ""})


@dataclass(frozen=True)
class LifeCounterConfig:
    """Configuration for a deployed LifeCounter. Modify these to experiment."""
    data_dir: Path = Path("data")
    ledger_filename: str = DEFAULT_LEDGER_FILENAME
    party_names: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_PARTY_NAMES))
    verbose: bool = True

    @property
    def ledger_path(self) -> Path:
        return self.data_dir / self.ledger_filename

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        dotenv_path: Optional[Union[str, Path]] = None,
    ) -> LifeCounterConfig:
        """
        Build a config from environment variables.

        Args:
            env: Mapping to read instead of os.environ. When given, no .env
                 file is loaded.
            dotenv_path: Explicit .env file (default: search from the cwd)
        """
        if env is None:
            load_dotenv(dotenv_path)
            env = os.environ

        names = dict(DEFAULT_PARTY_NAMES)
        if env.get(ENV_PREFIX + "PARTY_A_NAME"):
            names[PARTY_A] = env[ENV_PREFIX + "PARTY_A_NAME"]
        if env.get(ENV_PREFIX + "PARTY_B_NAME"):
            names[PARTY_B] = env[ENV_PREFIX + "PARTY_B_NAME"]

        verbose = cls.verbose
        if ENV_PREFIX + "VERBOSE" in env:
            verbose = env[ENV_PREFIX + "VERBOSE"].strip().lower() not in _FALSE_VALUES

        return cls(
            data_dir=Path(env.get(ENV_PREFIX + "DATA_DIR") or "data"),
            ledger_filename=env.get(ENV_PREFIX + "LEDGER_FILE") or DEFAULT_LEDGER_FILENAME,
            party_names=names,
            verbose=verbose,
        )

    def build_counter(
        self,
        hub: Optional[NotificationHub] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> LifeCounter:
        """Create a LifeCounter over the JSON ledger file at ledger_path."""
        store = JsonFileStore(self.ledger_path) if clock is None else JsonFileStore(self.ledger_path, clock)
        return LifeCounter(
            store,
            hub=hub,
            clock=clock,
            party_names=self.party_names,
            verbose=self.verbose,
        )
