"""Configuration management for bing-maps.

Provides Config dataclass with unified directory structure and load_config()
function to parse CLI arguments, environment variables, and defaults.

Default home is ./.bing-maps (relative to current working directory).
Can be overridden with --home CLI flag or BING_MAPS_HOME environment variable.
Precedence: CLI flag > env var > default

Request settings live in the [bing] table of config.toml at the home root:

    [bing]
    session_key = "..."   # skip scraping the session key from bing.com/maps
    timeout = 10
    market = "en-US"
    cache_tiles = true
"""

import functools
import os
import sys
import tomllib
from dataclasses import dataclass
from pathlib import Path

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


@dataclass
class Config:
    """Configuration with unified directory structure.

    All bing-maps data lives under a single home directory with organized subdirectories.
    """

    home: Path

    @property
    def tiles_dir(self) -> Path:
        """Directory for downloaded vector tile cache."""
        return self.home / "tiles"

    @property
    def logs_dir(self) -> Path:
        """Directory for application logs."""
        return self.home / "logs"

    @functools.cached_property
    def config_toml(self) -> dict:
        """Read config.toml from home root, defaulting to empty dict."""
        path = self.home / "config.toml"
        try:
            with path.open("rb") as f:
                return tomllib.load(f)
        except (IOError, ValueError):
            return {}

    @property
    def bing(self) -> dict:
        """The [bing] table of config.toml."""
        section = self.config_toml.get("bing")
        return section if isinstance(section, dict) else {}

    @property
    def session_key(self) -> str | None:
        return self.bing.get("session_key") or None

    @property
    def app_id(self) -> str | None:
        return self.bing.get("app_id") or None

    @property
    def user_agent(self) -> str:
        return self.bing.get("user_agent", DEFAULT_USER_AGENT)

    @property
    def timeout(self) -> float:
        return float(self.bing.get("timeout", 10))

    @property
    def market(self) -> str:
        return self.bing.get("market", "en-US")

    @property
    def cache_tiles(self) -> bool:
        return bool(self.bing.get("cache_tiles", True))


def load_config(args: list[str] | None = None) -> Config:
    """Load configuration from CLI args, environment, or defaults.

    Precedence: CLI flag > env var > default (./.bing-maps)

    Args:
        args: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Config instance with absolute path for home
    """
    if args is None:
        args = sys.argv[1:]

    # Check CLI argument: --home /path/to/home
    home_path: Path | None = None
    for i, arg in enumerate(args):
        if arg == "--home" and i + 1 < len(args):
            home_path = Path(args[i + 1])
            break

    if home_path is None:
        env_home = os.environ.get("BING_MAPS_HOME")
        if env_home:
            home_path = Path(env_home)

    if home_path is None:
        home_path = Path("./.bing-maps")

    cfg = Config(home=home_path.resolve())

    cfg.tiles_dir.mkdir(parents=True, exist_ok=True)
    cfg.logs_dir.mkdir(parents=True, exist_ok=True)

    return cfg


CONFIG: Config | None = None


def get_config() -> Config:
    """Returns the global CONFIG instance, loading it on first use."""
    global CONFIG
    if CONFIG is None:
        CONFIG = load_config()
    return CONFIG
