"""
Configuration management for pmu
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass
class PlayerConfig:
    """Configuration for the playback daemon."""

    port: int = 9999  # Loopback port the daemon listens on
    volume: float = 0.2  # 1.0 is normal volume
    loop_last: bool = False  # Replay the last song when the queue runs dry
    mpv_path: str = "mpv"


@dataclass
class LastfmConfig:
    """Configuration for Last.fm scrobbling."""

    username: str = ""
    password: str = ""
    api_key: str = ""
    shared_secret: str = ""
    threshold_seconds: int = 110  # Listening time before a song is scrobbled

    @property
    def enabled(self) -> bool:
        return all((self.username, self.password, self.api_key, self.shared_secret))


@dataclass
class DiscordConfig:
    """Configuration for Discord Rich Presence."""

    enabled: bool = True
    client_id: str = ""


@dataclass
class IPCConfig:
    """Configuration for client/daemon communication."""

    connect_timeout_seconds: float = 10.0  # How long a client waits for a spawned daemon
    read_timeout_seconds: float = 5.0  # Per-connection read timeout on the daemon


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: Optional[str] = None  # Default: ~/.local/share/pmu/pmu.log
    max_file_size_mb: int = 10
    backup_count: int = 5
    console_output: bool = False


@dataclass
class Config:
    """Main configuration object."""

    player: PlayerConfig = field(default_factory=PlayerConfig)
    lastfm: LastfmConfig = field(default_factory=LastfmConfig)
    discord: DiscordConfig = field(default_factory=DiscordConfig)
    ipc: IPCConfig = field(default_factory=IPCConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "pmu"
    return Path.home() / ".config" / "pmu"


def get_config_path() -> Path:
    """Get the main configuration file path."""
    return get_config_dir() / "config.toml"


def get_data_dir() -> Path:
    """Get the data directory path."""
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / "pmu"
    return Path.home() / ".local" / "share" / "pmu"


def create_default_config() -> str:
    """Create a default configuration TOML content."""
    return """
# pmu Configuration

[player]
# Loopback port the daemon listens on
port = 9999

# Playback volume (1.0 is normal volume)
volume = 0.2

# Keep replaying the last song when the queue runs out
loop_last = false

# mpv executable used for audio output
mpv_path = "mpv"

[lastfm]
# Last.fm credentials for scrobbling (leave empty to disable)
# Can also be set with LASTFM_USERNAME / LASTFM_PASSWORD
username = ""
password = ""

# API account from https://www.last.fm/api/account/create
# Can also be set with LASTFM_API_KEY / LASTFM_SHARED_SECRET
api_key = ""
shared_secret = ""

# Seconds a song must play before it is scrobbled
threshold_seconds = 110

[discord]
# Show the current song as Discord Rich Presence
enabled = true

# Discord application ID (can also be set with DISCORD_CLIENT_ID)
client_id = ""

[ipc]
# Seconds a client waits for a freshly spawned daemon to accept connections
connect_timeout_seconds = 10.0

# Seconds the daemon waits for a client to send its message
read_timeout_seconds = 5.0

[logging]
# Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
level = "INFO"

# Custom log file path (default: ~/.local/share/pmu/pmu.log)
# log_file = "/path/to/custom/pmu.log"

# Maximum log file size in MB before rotation
max_file_size_mb = 10

# Number of rotated log files to keep
backup_count = 5

# Also output logs to stderr (useful when running the daemon by hand)
console_output = false
""".strip()


def _apply_env_overrides(config: Config) -> None:
    """Override credentials with environment variables if present."""
    overrides = {
        "LASTFM_USERNAME": (config.lastfm, "username"),
        "LASTFM_PASSWORD": (config.lastfm, "password"),
        "LASTFM_API_KEY": (config.lastfm, "api_key"),
        "LASTFM_SHARED_SECRET": (config.lastfm, "shared_secret"),
        "DISCORD_CLIENT_ID": (config.discord, "client_id"),
    }
    for variable, (section, attribute) in overrides.items():
        value = os.environ.get(variable)
        if value:
            setattr(section, attribute, value)


def load_config() -> Config:
    """Load configuration from file or create default.

    Environment variables override TOML values:
    - LASTFM_USERNAME, LASTFM_PASSWORD
    - LASTFM_API_KEY, LASTFM_SHARED_SECRET
    - DISCORD_CLIENT_ID
    """
    from dotenv import load_dotenv

    env_path = get_config_dir() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    config_path = get_config_path()

    if not config_path.exists():
        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(config_path, "w", encoding="utf-8") as f:
                f.write(create_default_config())
        except OSError as e:
            print(f"Could not create default configuration at {config_path}: {e}")
        config = Config()
        _apply_env_overrides(config)
        return config

    try:
        with open(config_path, "rb") as f:
            toml_data = tomllib.load(f)

        config = Config()

        if "player" in toml_data:
            player_data = toml_data["player"]
            config.player = PlayerConfig(
                port=int(player_data.get("port", config.player.port)),
                volume=float(player_data.get("volume", config.player.volume)),
                loop_last=player_data.get("loop_last", config.player.loop_last),
                mpv_path=player_data.get("mpv_path", config.player.mpv_path),
            )

        if "lastfm" in toml_data:
            lastfm_data = toml_data["lastfm"]
            config.lastfm = LastfmConfig(
                username=lastfm_data.get("username", config.lastfm.username),
                password=lastfm_data.get("password", config.lastfm.password),
                api_key=lastfm_data.get("api_key", config.lastfm.api_key),
                shared_secret=lastfm_data.get(
                    "shared_secret", config.lastfm.shared_secret
                ),
                threshold_seconds=int(
                    lastfm_data.get(
                        "threshold_seconds", config.lastfm.threshold_seconds
                    )
                ),
            )

        if "discord" in toml_data:
            discord_data = toml_data["discord"]
            config.discord = DiscordConfig(
                enabled=discord_data.get("enabled", config.discord.enabled),
                client_id=str(discord_data.get("client_id", config.discord.client_id)),
            )

        if "ipc" in toml_data:
            ipc_data = toml_data["ipc"]
            config.ipc = IPCConfig(
                connect_timeout_seconds=float(
                    ipc_data.get(
                        "connect_timeout_seconds", config.ipc.connect_timeout_seconds
                    )
                ),
                read_timeout_seconds=float(
                    ipc_data.get("read_timeout_seconds", config.ipc.read_timeout_seconds)
                ),
            )

        if "logging" in toml_data:
            logging_data = toml_data["logging"]
            log_file = logging_data.get("log_file")
            if log_file:
                log_file = str(Path(log_file).expanduser())
            config.logging = LoggingConfig(
                level=logging_data.get("level", config.logging.level).upper(),
                log_file=log_file,
                max_file_size_mb=logging_data.get(
                    "max_file_size_mb", config.logging.max_file_size_mb
                ),
                backup_count=logging_data.get(
                    "backup_count", config.logging.backup_count
                ),
                console_output=logging_data.get(
                    "console_output", config.logging.console_output
                ),
            )

        _apply_env_overrides(config)
        return config

    except (OSError, tomllib.TOMLDecodeError, TypeError, ValueError) as e:
        print(f"Error loading configuration from {config_path}: {e}")
        print("Using default configuration.")
        config = Config()
        _apply_env_overrides(config)
        return config
