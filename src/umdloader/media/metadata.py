"""Title metadata extraction with sentinel defaults."""

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from umdloader.error_handling import MalformedError, NotFoundError
from umdloader.media.psf import PsfMetadata, parse_psf

logger = logging.getLogger(__name__)

DISCID_UNKNOWN_UMD = "[unknown, loaded from UMD]"
DISCID_UNKNOWN_FILE = "[unknown, loaded from file]"
DISCID_UNKNOWN_NOTHING_LOADED = "[unknown, nothing loaded]"

SENTINEL_DISC_IDS = frozenset(
    {DISCID_UNKNOWN_UMD, DISCID_UNKNOWN_FILE, DISCID_UNKNOWN_NOTHING_LOADED},
)

UMD_DATA_ENTRY = "UMD_DATA.BIN"

# Firmware assumed for homebrew, newer than any real firmware
HOMEBREW_FIRMWARE_VERSION = 999

_FIRMWARE_PATTERN = re.compile(r"^\s*(\d+)\.(\d{1,2})")


def is_sentinel_disc_id(disc_id: str | None) -> bool:
    return not disc_id or disc_id in SENTINEL_DISC_IDS


@dataclass(frozen=True)
class MediaMetadata:
    """Fields the loader consumes from a title's PSF."""

    title: str
    disc_id: str
    is_homebrew: bool
    memory_size_flag: bool = False
    firmware_hint: str | None = None
    umd_id: str | None = None
    recovered: bool = False  # PSF missing or unparsable, defaults applied


@dataclass(frozen=True)
class UmdData:
    """Fields of the pipe-separated UMD_DATA.BIN record."""

    product_id: str
    umd_id: str | None

    @property
    def disc_id(self) -> str:
        """Product id in DISC_ID form (ULUS-10041 becomes ULUS10041)."""
        return self.product_id.replace("-", "")


def parse_umd_data(data: bytes) -> UmdData | None:
    content = data.replace(b"\x00", b" ").decode("ascii", errors="replace")
    parts = [part.strip() for part in content.split("|")]
    if not parts or not parts[0]:
        return None
    umd_id = parts[1] if len(parts) >= 2 and parts[1] else None
    return UmdData(product_id=parts[0], umd_id=umd_id)


def fallback_title(path: Path) -> str:
    """Title derived from the media location when no metadata is usable."""
    path = Path(path)
    if path.is_dir():
        return path.name or str(path)
    return path.parent.name or path.stem


def parse_firmware_version(value: str | None) -> int | None:
    """Convert a PSP_SYSTEM_VER string ("6.60") into its numeric form (660)."""
    if not value:
        return None
    match = _FIRMWARE_PATTERN.match(value)
    if not match:
        return None
    major, minor = match.groups()
    return int(major) * 100 + int(minor.ljust(2, "0"))


def resolve_firmware_version(metadata: MediaMetadata, default: str) -> int | None:
    """Firmware to emulate: homebrew gets the newest, others their declared one."""
    if metadata.is_homebrew:
        return HOMEBREW_FIRMWARE_VERSION
    declared = parse_firmware_version(metadata.firmware_hint)
    if declared is not None:
        return declared
    return parse_firmware_version(default)


def _read_umd_data(volume) -> UmdData | None:
    try:
        return parse_umd_data(volume.read_file(UMD_DATA_ENTRY))
    except (FileNotFoundError, NotFoundError):
        return None


def extract_media_metadata(volume, param_sfo: str, *, game: bool) -> MediaMetadata:
    """Read a disc's param.sfo, falling back to sentinel defaults if malformed.

    Game discs report whether they look like homebrew; video and audio discs
    never do. Discs without DISC_ID take their id from UMD_DATA.BIN when
    available, otherwise the "unknown from UMD" sentinel.
    """
    umd_data = _read_umd_data(volume)
    umd_id = umd_data.umd_id if umd_data else None

    try:
        psf = parse_psf(volume.read_file(param_sfo))
    except MalformedError as e:
        logger.warning(f"Unreadable {param_sfo} in {volume.path}, using defaults: {e}")
        return MediaMetadata(
            title=fallback_title(volume.path),
            disc_id=DISCID_UNKNOWN_UMD,
            is_homebrew=True,
            umd_id=umd_id,
            recovered=True,
        )

    disc_id = psf.get_string("DISC_ID")
    if not disc_id:
        if not game and umd_data is not None:
            disc_id = umd_data.disc_id
        else:
            disc_id = DISCID_UNKNOWN_UMD

    return MediaMetadata(
        title=psf.get_printable_string("TITLE") or fallback_title(volume.path),
        disc_id=disc_id,
        is_homebrew=psf.is_likely_homebrew() if game else False,
        memory_size_flag=psf.get_numeric("MEMSIZE") == 1,
        firmware_hint=psf.get_string("PSP_SYSTEM_VER"),
        umd_id=umd_id,
    )


def extract_file_metadata(volume) -> MediaMetadata:
    """Metadata for a plain executable, from its package PSF when present.

    Executables without a PSF are assumed to be homebrew.
    """
    raw = volume.read_package_metadata()
    psf: PsfMetadata | None = None
    if raw is not None:
        try:
            psf = parse_psf(raw)
        except MalformedError as e:
            logger.warning(f"Unreadable package metadata in {volume.path}: {e}")

    if psf is None:
        return MediaMetadata(
            title=fallback_title(volume.path),
            disc_id=DISCID_UNKNOWN_FILE,
            is_homebrew=True,
            recovered=True,
        )

    return MediaMetadata(
        title=psf.get_printable_string("TITLE") or fallback_title(volume.path),
        disc_id=psf.get_string("DISC_ID") or DISCID_UNKNOWN_FILE,
        is_homebrew=psf.is_likely_homebrew(),
        memory_size_flag=psf.get_numeric("MEMSIZE") == 1,
        firmware_hint=psf.get_string("PSP_SYSTEM_VER"),
    )
