"""
Hook configuration.

Set once at startup and passed explicitly to every component; nothing reads
process-wide state after that.
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from common.exceptions import InvalidConfigError

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class HookConfig:
    """
    Runtime configuration.

    Attributes:
        dry_run: Report state-changing commands instead of running them
        qm: Path or name of the ``qm`` binary
        pvesh: Path or name of the ``pvesh`` binary
        scan_workers: Concurrent ``qm config`` scans during conflict detection
        shutdown_workers: Cap on concurrent shutdowns (None means one per VM)
        log_file: Optional rotating log file
        log_json: Write the log file as JSON lines carrying hook context
    """
    dry_run: bool = False
    qm: str = "qm"
    pvesh: str = "pvesh"
    scan_workers: int = 1
    shutdown_workers: Optional[int] = None
    log_file: Optional[Path] = None
    log_json: bool = False

    def __post_init__(self):
        if self.scan_workers < 1:
            raise InvalidConfigError("scan_workers", self.scan_workers, "must be at least 1")
        if self.shutdown_workers is not None and self.shutdown_workers < 1:
            raise InvalidConfigError(
                "shutdown_workers", self.shutdown_workers, "must be at least 1 or unset",
            )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "HookConfig":
        """Build a config from ``QMEXMUT_*`` environment variables."""
        env = os.environ if environ is None else environ

        def _int(name: str, default: Optional[int]) -> Optional[int]:
            raw = env.get(name, "").strip()
            if not raw:
                return default
            try:
                return int(raw)
            except ValueError:
                raise InvalidConfigError(name, raw, "not an integer") from None

        log_file = env.get("QMEXMUT_LOG_FILE")
        return cls(
            dry_run=env.get("QMEXMUT_DRY_RUN", "").strip().lower() in _TRUTHY,
            qm=env.get("QMEXMUT_QM") or "qm",
            pvesh=env.get("QMEXMUT_PVESH") or "pvesh",
            scan_workers=_int("QMEXMUT_SCAN_WORKERS", 1),
            shutdown_workers=_int("QMEXMUT_SHUTDOWN_WORKERS", None),
            log_file=Path(log_file) if log_file else None,
            log_json=env.get("QMEXMUT_LOG_JSON", "").strip().lower() in _TRUTHY,
        )

    def with_overrides(self, **overrides) -> "HookConfig":
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return dataclasses.replace(self, **changes)
