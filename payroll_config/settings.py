"""
Engine Settings Schema.

Defines the runtime knobs of the payroll engine and their defaults.  Labor
rules themselves are never settings: they come from versioned rule-set
files (see ``payroll_config.loader``).
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Self

from payroll_kernel.logging_config import get_logger

logger = get_logger("config.settings")

MAX_WORKERS_LIMIT = 64


@dataclass(frozen=True)
class EngineSettings:
    """
    Configuration schema for the payroll engine.

        settings = EngineSettings.from_dict({"max_workers": 8})
    """

    # Parallel ledger computation
    max_workers: int = 4

    # Defaults applied when the caller does not say otherwise
    default_jurisdiction: str = "GT"
    default_currency: str = "GTQ"

    # Rule-set files; None means the packaged sets directory
    rule_sets_dir: Path | None = None

    def __post_init__(self):
        if not isinstance(self.max_workers, int) or self.max_workers < 1:
            raise ValueError(f"max_workers must be a positive int, got {self.max_workers!r}")
        if self.max_workers > MAX_WORKERS_LIMIT:
            raise ValueError(f"max_workers cannot exceed {MAX_WORKERS_LIMIT}")
        if not self.default_jurisdiction.strip():
            raise ValueError("default_jurisdiction is required")
        if len(self.default_currency) != 3:
            raise ValueError(
                f"default_currency must be an ISO 4217 code, got '{self.default_currency}'"
            )
        object.__setattr__(self, "default_jurisdiction", self.default_jurisdiction.strip().upper())
        object.__setattr__(self, "default_currency", self.default_currency.upper())

        logger.info(
            "engine_settings_initialized",
            extra={
                "max_workers": self.max_workers,
                "default_jurisdiction": self.default_jurisdiction,
                "default_currency": self.default_currency,
                "rule_sets_dir": str(self.rule_sets_dir) if self.rule_sets_dir else None,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create settings from a dictionary (e.g., loaded from a file)."""
        logger.info(
            "engine_settings_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        data = dict(data)
        if data.get("rule_sets_dir") is not None:
            data["rule_sets_dir"] = Path(data["rule_sets_dir"])
        return cls(**data)
