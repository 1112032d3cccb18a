"""Configuration system for procreaper."""

from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit

from procreaper.models import ReclamationConfig


@dataclass
class ReclamationSettings:
    """Periodic reclamation configuration."""

    interval_seconds: int = 30  # Seconds between reclamation ticks
    exclusions: list[str] = field(default_factory=list)  # Process names never killed
    enabled_on_start: bool = False  # Start reclaiming as soon as the app starts

    def to_reclamation_config(self) -> ReclamationConfig:
        """Build the runtime scheduler config."""
        return ReclamationConfig.from_raw(self.interval_seconds, ";".join(self.exclusions))


@dataclass
class UsageSettings:
    """CPU usage sampling configuration."""

    sample_seconds: float = 1.0  # Blocking window of each cpu_percent() reading


@dataclass
class TUIConfig:
    """TUI-specific configuration."""

    drain_interval: float = 0.5  # Seconds between checks for background updates


@dataclass
class LoggingConfig:
    """Log file configuration."""

    level: str = "INFO"
    max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    backup_count: int = 3  # Number of rotated files to keep


def _dataclass_to_table(obj: object) -> tomlkit.items.Table:
    """Convert a dataclass instance to a tomlkit Table recursively."""
    table = tomlkit.table()
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if is_dataclass(value) and not isinstance(value, type):
            table.add(f.name, _dataclass_to_table(value))
        else:
            table.add(f.name, value)
    return table


@dataclass
class Config:
    """Main configuration container."""

    reclamation: ReclamationSettings = field(default_factory=ReclamationSettings)
    usage: UsageSettings = field(default_factory=UsageSettings)
    tui: TUIConfig = field(default_factory=TUIConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "procreaper"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "procreaper"

    @property
    def log_path(self) -> Path:
        """Log file path."""
        return self.state_dir / "procreaper.log"

    def to_toml(self) -> str:
        """Render all sections as a TOML document."""
        doc = tomlkit.document()
        for name in ("reclamation", "usage", "tui", "logging"):
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())
        return tomlkit.dumps(doc)

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_toml())

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        All defaults come from the dataclass definitions, so Config() and
        Config.load() on a missing file are identical.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f).unwrap()
        except tomlkit.exceptions.TOMLKitError as e:
            raise ValueError(f"Failed to parse config file {path}: {e}") from e

        try:
            return cls(
                reclamation=_load_reclamation(data.get("reclamation", {})),
                usage=_load_usage(data.get("usage", {})),
                tui=_load_tui(data.get("tui", {})),
                logging=_load_logging(data.get("logging", {})),
            )
        except ValueError as e:
            raise ValueError(f"Invalid config file {path}: {e}") from e


def _require_int(name: str, value: object, minimum: int) -> int:
    # bool is an int subclass, but `true` is never a valid count
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def _require_positive(name: str, value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number, got {value!r}")
    if value <= 0:
        raise ValueError(f"{name} must be > 0, got {value}")
    return float(value)


def _load_reclamation(data: dict) -> ReclamationSettings:
    """Load reclamation settings, using dataclass defaults for missing fields."""
    defaults = ReclamationSettings()

    interval_seconds = _require_int(
        "reclamation.interval_seconds",
        data.get("interval_seconds", defaults.interval_seconds),
        minimum=1,
    )

    exclusions = data.get("exclusions", defaults.exclusions)
    if not isinstance(exclusions, list) or not all(isinstance(n, str) for n in exclusions):
        raise ValueError(
            f"reclamation.exclusions must be a list of process names, got {exclusions!r}"
        )

    enabled_on_start = data.get("enabled_on_start", defaults.enabled_on_start)
    if not isinstance(enabled_on_start, bool):
        raise ValueError(
            f"reclamation.enabled_on_start must be true or false, got {enabled_on_start!r}"
        )

    return ReclamationSettings(
        interval_seconds=interval_seconds,
        exclusions=list(exclusions),
        enabled_on_start=enabled_on_start,
    )


def _load_usage(data: dict) -> UsageSettings:
    defaults = UsageSettings()
    return UsageSettings(
        sample_seconds=_require_positive(
            "usage.sample_seconds", data.get("sample_seconds", defaults.sample_seconds)
        ),
    )


def _load_tui(data: dict) -> TUIConfig:
    defaults = TUIConfig()
    return TUIConfig(
        drain_interval=_require_positive(
            "tui.drain_interval", data.get("drain_interval", defaults.drain_interval)
        ),
    )


def _load_logging(data: dict) -> LoggingConfig:
    defaults = LoggingConfig()

    level = data.get("level", defaults.level)
    if not isinstance(level, str):
        raise ValueError(f"logging.level must be a string, got {level!r}")

    return LoggingConfig(
        level=level,
        max_bytes=_require_int(
            "logging.max_bytes", data.get("max_bytes", defaults.max_bytes), minimum=0
        ),
        backup_count=_require_int(
            "logging.backup_count", data.get("backup_count", defaults.backup_count), minimum=0
        ),
    )
