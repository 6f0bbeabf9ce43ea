"""
config.py - Configuration model for mbbrowse
"""

from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field, ValidationError, field_validator
from rich.console import Console
import sys

try:
    import tomllib
except ModuleNotFoundError:
    import tomli as tomllib

from mbbrowse.__version__ import __version__

console = Console()

DEFAULT_USER_AGENT = f"mbbrowse/{__version__} ( https://example.invalid/mbbrowse )"
COVER_SIZES = (250, 500, 1200)


class CatalogConfig(BaseModel):
    """MusicBrainz web service settings."""

    base_url: str = "https://musicbrainz.org/ws/2"
    user_agent: str = DEFAULT_USER_AGENT
    timeout: int = Field(default=10, gt=0)
    search_limit: int = Field(
        default=25,
        ge=1,
        le=100,
        description="Maximum number of entities requested per search"
    )
    max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts per search call before a transient failure is surfaced"
    )


class ImagesConfig(BaseModel):
    """Cover Art Archive settings."""

    base_url: str = "https://coverartarchive.org"
    size: int = 250
    timeout: int = Field(default=15, gt=0)
    max_concurrency: int = Field(
        default=8,
        ge=0,
        description="Simultaneous cover downloads; 0 disables the bound"
    )

    @field_validator("size")
    @classmethod
    def _known_size(cls, value: int) -> int:
        if value not in COVER_SIZES:
            allowed = ", ".join(str(size) for size in COVER_SIZES)
            raise ValueError(f"size must be one of {allowed}")
        return value

    def concurrency_limit(self) -> Optional[int]:
        return self.max_concurrency or None


class LoggingConfig(BaseModel):
    debug: bool = False
    log_file: str = ""

    def log_path(self) -> Optional[Path]:
        return Path(self.log_file).expanduser() if self.log_file else None


class BrowserConfig(BaseModel):
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    images: ImagesConfig = Field(default_factory=ImagesConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    config_path: Optional[Path] = None


def resolve_config_path(args_config: Optional[str]) -> Optional[Path]:
    """Pick the config file: explicit path, ./config.toml, then the checkout root."""
    if args_config:
        p = Path(args_config).expanduser()
        if p.is_dir():
            p = p / "config.toml"
        return p

    cwd_candidate = Path.cwd() / "config.toml"
    if cwd_candidate.exists():
        return cwd_candidate

    repo_root = Path(__file__).resolve().parent.parent
    root_candidate = repo_root / "config.toml"
    if root_candidate.exists() and (
        (repo_root / ".git").exists() or (repo_root / "pyproject.toml").exists()
    ):
        return root_candidate
    return None


def load_config(config_path: Optional[Path]) -> BrowserConfig:
    """Load configuration from TOML file; no path means built-in defaults."""

    if config_path is None:
        return BrowserConfig()

    if not config_path.exists():
        console.print(f"[red][ERROR][/red] Configuration file not found: {config_path}")
        sys.exit(1)

    try:
        with open(config_path, "rb") as f:
            config_data = tomllib.load(f)

        return BrowserConfig(
            catalog=CatalogConfig(**config_data.get("catalog", {})),
            images=ImagesConfig(**config_data.get("images", {})),
            logging=LoggingConfig(**config_data.get("logging", {})),
            config_path=config_path
        )

    except (OSError, tomllib.TOMLDecodeError, ValidationError, TypeError) as e:
        console.print(f"[red][ERROR][/red] Error loading configuration: {e}")
        sys.exit(1)
