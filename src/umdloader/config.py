"""Configuration management for umdloader."""

from pathlib import Path

import tomli
from pydantic import BaseModel, Field, field_validator

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "umdloader" / "config.toml"


class LoaderConfig(BaseModel):
    """Main configuration for umdloader."""

    # Paths
    state_dir: Path = Field(default=Path("~/.local/share/umdloader"))
    log_dir: Path = Field(default=Path("~/.local/share/umdloader/logs"))
    decrypted_cache_dir: Path = Field(default=Path("~/.local/share/umdloader/decrypted"))
    disc_tmp_dir: Path = Field(default=Path("~/.local/share/umdloader/tmp"))

    # History
    mru_capacity: int = Field(default=10)

    # Loading behavior
    umd_buffering: bool = Field(default=False)  # skip locally cached boot images
    load_and_run: bool = Field(default=False)

    # Memory model
    memory_size: int = Field(default=0)  # bytes, 0 = use MEMSIZE from metadata
    memory_64mb: bool = Field(default=False)

    # Firmware used when a title declares none
    default_firmware_version: str = Field(default="6.60")

    @field_validator(
        "state_dir",
        "log_dir",
        "decrypted_cache_dir",
        "disc_tmp_dir",
        mode="before",
    )
    @classmethod
    def expand_paths(cls, v: Path | str) -> Path:
        """Expand user home directory in paths."""
        if isinstance(v, str):
            v = Path(v)
        return v.expanduser().resolve()

    @field_validator("mru_capacity", mode="after")
    @classmethod
    def capacity_positive(cls, v: int) -> int:
        """Recent lists need room for at least one entry."""
        if v < 1:
            msg = "mru_capacity must be at least 1"
            raise ValueError(msg)
        return v

    @field_validator("memory_size", mode="after")
    @classmethod
    def memory_size_not_negative(cls, v: int) -> int:
        if v < 0:
            msg = "memory_size cannot be negative"
            raise ValueError(msg)
        return v

    @property
    def settings_db(self) -> Path:
        """SQLite database holding persisted settings and recent lists."""
        return self.state_dir / "settings.db"

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        for dir_path in [
            self.state_dir,
            self.log_dir,
            self.decrypted_cache_dir,
            self.disc_tmp_dir,
        ]:
            dir_path.mkdir(parents=True, exist_ok=True)


def load_config(config_path: Path | None = None) -> LoaderConfig:
    """Load configuration from file or defaults."""
    if config_path is None:
        # Check common config locations (user config first)
        possible_paths = [
            DEFAULT_CONFIG_PATH,
            Path.cwd() / "umdloader.toml",
        ]

        for path in possible_paths:
            if path.exists():
                config_path = path
                break

    if config_path and config_path.exists():
        with open(config_path, "rb") as f:
            config_data = tomli.load(f)
        return LoaderConfig(**config_data)
    # Use defaults
    return LoaderConfig()


def create_sample_config(path: Path) -> None:
    """Create a sample configuration file."""
    sample_config = """# umdloader Configuration
# =======================

# ============================================================================
# DIRECTORIES
# ============================================================================

state_dir = "~/.local/share/umdloader"                  # Settings database and recent lists
log_dir = "~/.local/share/umdloader/logs"               # Log files
decrypted_cache_dir = "~/.local/share/umdloader/decrypted"  # <DISC_ID>.BIN decrypted boot images
disc_tmp_dir = "~/.local/share/umdloader/tmp"           # <DISC_ID>/EBOOT.BIN scratch images

# ============================================================================
# LOADING
# ============================================================================

mru_capacity = 10                                       # Entries kept per recent list
umd_buffering = false                                   # Ignore cached decrypted boot images
load_and_run = false                                    # Start the runtime right after loading

# ============================================================================
# ADVANCED SETTINGS - Most users can leave these as defaults
# ============================================================================

memory_size = 0                                         # Force a memory size in bytes (0 = from metadata)
memory_64mb = false                                     # Force the 64MB memory model
default_firmware_version = "6.60"                       # Firmware when a title declares none
"""

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        f.write(sample_config)
