"""
Configuration management for tunemux
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
DEFAULT_REFERER = "http://www.kuwo.cn/"


@dataclass
class LibraryConfig:
    """Configuration for the local music library."""

    library_paths: List[str] = field(
        default_factory=lambda: [str(Path.home() / "Music")]
    )
    supported_formats: List[str] = field(
        default_factory=lambda: [".mp3", ".m4a", ".wav", ".flac", ".ogg", ".opus"]
    )
    scan_recursive: bool = True


@dataclass
class SearchConfig:
    """Configuration for online catalog search."""

    debounce_ms: int = 600
    online_enabled: bool = False  # First-run default, persisted setting wins
    max_workers: int = 4

    def validate(self) -> None:
        """Validate search configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if self.debounce_ms < 0:
            raise ValueError(f"debounce_ms must be >= 0, got {self.debounce_ms}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")


@dataclass
class HttpConfig:
    """Configuration for the shared HTTP client."""

    timeout_seconds: float = 10.0
    user_agent: str = DEFAULT_USER_AGENT
    referer: str = DEFAULT_REFERER


@dataclass
class PlayerConfig:
    """Configuration for the mpv playback engine."""

    mpv_socket_path: Optional[str] = None
    volume: int = 50
    position_poll_ms: int = 500


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: Optional[str] = (
        None  # Custom log file path (default: ~/.local/share/tunemux/tunemux.log)
    )
    max_file_size_mb: int = 10  # Maximum log file size before rotation
    backup_count: int = 5  # Number of backup files to keep
    console_output: bool = False  # Also output to console (for debugging)


@dataclass
class Config:
    """Main configuration object."""

    library: LibraryConfig = field(default_factory=LibraryConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    player: PlayerConfig = field(default_factory=PlayerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "tunemux"
    return Path.home() / ".config" / "tunemux"


def _find_project_config() -> Optional[Path]:
    """Find config.toml in project root by looking for pyproject.toml.

    Used during development so the project's config file is picked up
    regardless of the working directory.

    Returns:
        Path to config.toml in project root, or None if not found
    """
    current = Path(__file__).resolve().parent
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            config_path = parent / "config.toml"
            if config_path.exists():
                return config_path
            return None
    return None


def get_config_path() -> Path:
    """Get the main configuration file path.

    Checks for config.toml in the following order:
    1. Project root (detected via pyproject.toml) - for development
    2. Current working directory
    3. XDG_CONFIG_HOME/tunemux (or ~/.config/tunemux)
    """
    project_config = _find_project_config()
    if project_config:
        return project_config

    local_config = Path.cwd() / "config.toml"
    if local_config.exists():
        return local_config

    return get_config_dir() / "config.toml"


def get_data_dir() -> Path:
    """Get the data directory path."""
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / "tunemux"
    return Path.home() / ".local" / "share" / "tunemux"


def create_default_config() -> str:
    """Create a default configuration TOML content."""
    return """
# tunemux Configuration

[library]
# Paths to scan for music files
library_paths = ["~/Music"]

# Supported audio file formats
supported_formats = [".mp3", ".m4a", ".wav", ".flac", ".ogg", ".opus"]

# Recursively scan subdirectories
scan_recursive = true

[search]
# Quiet period after the last keystroke before catalogs are queried
debounce_ms = 600

# Query online catalogs on first run (toggled later with `tunemux online on|off`)
online_enabled = false

# Worker threads for catalog and stream-resolution requests
max_workers = 4

[http]
# Per-request timeout in seconds
timeout_seconds = 10.0

# Headers sent with every catalog request (some catalogs reject requests without them)
# user_agent = "Mozilla/5.0 ..."
# referer = "http://www.kuwo.cn/"

[player]
# Path for mpv socket (auto-detected if not specified)
# mpv_socket_path = "/tmp/tunemux-mpv-socket"

# Default volume (0-100)
volume = 50

# How often the playback position is refreshed, in milliseconds
position_poll_ms = 500

[logging]
# Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
level = "INFO"

# Custom log file path (default: ~/.local/share/tunemux/tunemux.log)
# log_file = "/path/to/custom/tunemux.log"

# Maximum log file size in MB before rotation
max_file_size_mb = 10

# Number of backup log files to keep
backup_count = 5

# Also output logs to console (useful for debugging)
console_output = false
""".strip()


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _apply_env_overrides(config: Config) -> Config:
    """Apply TUNEMUX_* environment variable overrides in place."""
    online_enabled = os.environ.get("TUNEMUX_ONLINE_ENABLED")
    if online_enabled:
        config.search.online_enabled = _parse_bool(online_enabled)

    http_timeout = os.environ.get("TUNEMUX_HTTP_TIMEOUT")
    if http_timeout:
        try:
            config.http.timeout_seconds = float(http_timeout)
        except ValueError:
            print(f"Warning: ignoring invalid TUNEMUX_HTTP_TIMEOUT={http_timeout!r}")

    log_level = os.environ.get("TUNEMUX_LOG_LEVEL")
    if log_level:
        config.logging.level = log_level.upper()

    return config


def parse_config(toml_data: dict) -> Config:
    """Build a Config from parsed TOML data, falling back to defaults per key."""
    config = Config()

    if "library" in toml_data:
        library_data = toml_data["library"]
        config.library = LibraryConfig(
            library_paths=[
                str(Path(p).expanduser())
                for p in library_data.get(
                    "library_paths", config.library.library_paths
                )
            ],
            supported_formats=[
                fmt.lower()
                for fmt in library_data.get(
                    "supported_formats", config.library.supported_formats
                )
            ],
            scan_recursive=library_data.get(
                "scan_recursive", config.library.scan_recursive
            ),
        )

    if "search" in toml_data:
        search_data = toml_data["search"]
        config.search = SearchConfig(
            debounce_ms=search_data.get("debounce_ms", config.search.debounce_ms),
            online_enabled=search_data.get(
                "online_enabled", config.search.online_enabled
            ),
            max_workers=search_data.get("max_workers", config.search.max_workers),
        )
        try:
            config.search.validate()
        except ValueError as e:
            print(f"Warning: Invalid search configuration: {e}")
            print("Using default search configuration.")
            config.search = SearchConfig()

    if "http" in toml_data:
        http_data = toml_data["http"]
        config.http = HttpConfig(
            timeout_seconds=float(
                http_data.get("timeout_seconds", config.http.timeout_seconds)
            ),
            user_agent=http_data.get("user_agent", config.http.user_agent),
            referer=http_data.get("referer", config.http.referer),
        )

    if "player" in toml_data:
        player_data = toml_data["player"]
        config.player = PlayerConfig(
            mpv_socket_path=player_data.get("mpv_socket_path"),
            volume=player_data.get("volume", config.player.volume),
            position_poll_ms=player_data.get(
                "position_poll_ms", config.player.position_poll_ms
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
            backup_count=logging_data.get("backup_count", config.logging.backup_count),
            console_output=logging_data.get(
                "console_output", config.logging.console_output
            ),
        )

    return config


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from file or create default.

    Environment variables override TOML values:
    - TUNEMUX_ONLINE_ENABLED
    - TUNEMUX_HTTP_TIMEOUT
    - TUNEMUX_LOG_LEVEL
    """
    from dotenv import load_dotenv

    env_path = get_config_dir() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    config_path = config_path or get_config_path()

    if not config_path.exists():
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(create_default_config())
        print(f"Created default configuration at: {config_path}")
        return _apply_env_overrides(Config())

    try:
        with open(config_path, "rb") as f:
            toml_data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        print(f"Error loading configuration from {config_path}: {e}")
        print("Using default configuration.")
        return _apply_env_overrides(Config())

    return _apply_env_overrides(parse_config(toml_data))


def ensure_directories() -> None:
    """Ensure all necessary directories exist."""
    get_config_dir().mkdir(parents=True, exist_ok=True)
    get_data_dir().mkdir(parents=True, exist_ok=True)
