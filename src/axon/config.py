"""Configuration system for axon."""

from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path

import tomlkit


class ConfigError(ValueError):
    """Raised when the config file is unreadable or inconsistent."""


@dataclass
class ConnectionConfig:
    """Defaults for the login form and the websocket session."""

    server: str = ""  # Empty means the login form shows its placeholder URL
    password: str = ""
    autoconnect: bool = False  # Submit the login form on startup
    connect_timeout: float = 10.0  # Seconds before a handshake attempt is abandoned


@dataclass
class TUIConfig:
    """TUI-specific configuration."""

    render_interval: float = 10.0  # Max seconds between repaints (keeps uptime fresh)
    poll_interval: float = 2.5  # Seconds the receive loop sleeps when the socket is idle
    tracker_pane_percent: float = 0.2  # Share of the width used by the tracker pane
    details_height: int = 6  # Rows used by pinned torrent details (tab header included)


@dataclass
class SystemConfig:
    """Logging configuration."""

    log_max_bytes: int = 5 * 1024 * 1024  # Max log file size (5MB)
    log_backup_count: int = 3  # Number of backup log files to keep


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

    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    tui: TUIConfig = field(default_factory=TUIConfig)
    system: SystemConfig = field(default_factory=SystemConfig)

    @property
    def config_dir(self) -> Path:
        """Configuration directory."""
        return Path.home() / ".config" / "axon"

    @property
    def config_path(self) -> Path:
        """Path to config file."""
        return self.config_dir / "config.toml"

    @property
    def state_dir(self) -> Path:
        """State directory for logs."""
        return Path.home() / ".local" / "state" / "axon"

    @property
    def log_path(self) -> Path:
        """Session log path.

        Logs are expendable persistent state, so they go in XDG_STATE_HOME.
        """
        return self.state_dir / "axon.log"

    def validate(self) -> None:
        """Reject combinations the client cannot act on.

        Raises:
            ConfigError: If autoconnect is enabled without a server.
        """
        if self.connection.autoconnect and not self.connection.server:
            raise ConfigError("autoconnect is enabled but no server is configured")

    def save(self, path: Path | None = None) -> None:
        """Save config to TOML file."""
        path = path or self.config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        for name in ("connection", "tui", "system"):
            doc.add(name, _dataclass_to_table(getattr(self, name)))
            doc.add(tomlkit.nl())

        path.write_text(tomlkit.dumps(doc))

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Load config from TOML file, returning defaults for missing values.

        All defaults come from the dataclass definitions, so Config() and
        Config.load() agree on every value the file leaves out.

        Raises:
            ConfigError: If the file cannot be parsed or fails validation.
        """
        defaults = cls()
        path = path or defaults.config_path
        if not path.exists():
            return defaults

        try:
            with open(path) as f:
                data = tomlkit.load(f)
        except tomlkit.exceptions.TOMLKitError as e:
            raise ConfigError(f"Failed to parse config file {path}: {e}") from e

        config = cls(
            connection=_load_connection_config(data.get("connection", {})),
            tui=_load_tui_config(data.get("tui", {})),
            system=_load_system_config(data.get("system", {})),
        )
        config.validate()
        return config


def _load_connection_config(data: dict) -> ConnectionConfig:
    """Load connection config from TOML data, using dataclass defaults for missing fields."""
    d = ConnectionConfig()
    return ConnectionConfig(
        server=str(data.get("server", d.server)),
        password=str(data.get("password", d.password)),
        autoconnect=bool(data.get("autoconnect", d.autoconnect)),
        connect_timeout=float(data.get("connect_timeout", d.connect_timeout)),
    )


def _load_tui_config(data: dict) -> TUIConfig:
    """Load TUI config from TOML data."""
    d = TUIConfig()
    return TUIConfig(
        render_interval=float(data.get("render_interval", d.render_interval)),
        poll_interval=float(data.get("poll_interval", d.poll_interval)),
        tracker_pane_percent=float(data.get("tracker_pane_percent", d.tracker_pane_percent)),
        details_height=int(data.get("details_height", d.details_height)),
    )


def _load_system_config(data: dict) -> SystemConfig:
    """Load system config from TOML data."""
    d = SystemConfig()
    return SystemConfig(
        log_max_bytes=data.get("log_max_bytes", d.log_max_bytes),
        log_backup_count=data.get("log_backup_count", d.log_backup_count),
    )
