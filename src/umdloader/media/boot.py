"""Boot image resolution over an ordered list of candidates."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from umdloader.error_handling import (
    LoaderIOError,
    MalformedError,
    NoBootFoundError,
    NotFoundError,
)
from umdloader.media.metadata import is_sentinel_disc_id

if TYPE_CHECKING:
    from umdloader.config import LoaderConfig
    from umdloader.media.volume import Volume

logger = logging.getLogger(__name__)

SYSDIR = "PSP_GAME/SYSDIR"
LEGACY_BOOT_ENTRY = f"{SYSDIR}/EBOOT.OLD"
PRIMARY_BOOT_ENTRY = f"{SYSDIR}/EBOOT.BIN"
SECONDARY_BOOT_ENTRY = f"{SYSDIR}/BOOT.BIN"

DECRYPTED_IMAGE_SUFFIX = ".BIN"


class BootSource(Enum):
    """Where a boot candidate's bytes come from."""

    CACHED_DECRYPTED = "cached_decrypted"
    TEMP_DECRYPTED = "temp_decrypted"
    VOLUME = "volume"
    EXECUTABLE = "executable"  # a bare executable or package loaded as a file


@dataclass(frozen=True)
class BootCandidate:
    """A named entry point that may hold the bootable executable."""

    source: BootSource
    location: str
    priority: int

    def __str__(self) -> str:
        if self.source is BootSource.VOLUME:
            return f"disc0:/{self.location}"
        return self.location


@dataclass(frozen=True)
class BootImage:
    """The executable bytes selected for booting."""

    candidate: BootCandidate
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class CandidateStatus(Enum):
    LOADED = "loaded"
    SKIPPED = "skipped"  # soft failure, try the next candidate
    FAILED = "failed"  # hard failure, abort resolution


@dataclass(frozen=True)
class CandidateOutcome:
    """Result of probing a single candidate."""

    candidate: BootCandidate
    status: CandidateStatus
    image: BootImage | None = None
    reason: str | None = None
    error: Exception | None = None

    @classmethod
    def loaded(cls, candidate: BootCandidate, data: bytes) -> CandidateOutcome:
        return cls(candidate, CandidateStatus.LOADED, image=BootImage(candidate, data))

    @classmethod
    def skipped(cls, candidate: BootCandidate, reason: str) -> CandidateOutcome:
        return cls(candidate, CandidateStatus.SKIPPED, reason=reason)

    @classmethod
    def failed(cls, candidate: BootCandidate, error: Exception) -> CandidateOutcome:
        return cls(candidate, CandidateStatus.FAILED, reason=str(error), error=error)


class BootResolver:
    """Returns the first candidate, in priority order, that yields bytes."""

    def __init__(self, volume: Volume | None = None):
        self.volume = volume

    def resolve(self, candidates: list[BootCandidate]) -> BootImage:
        """Probe candidates until one loads.

        Absent, empty or malformed candidates are skipped; any other I/O fault
        raises LoaderIOError immediately. Raises NoBootFoundError when every
        candidate was skipped.
        """
        tried: list[str] = []
        for candidate in sorted(candidates, key=lambda c: c.priority):
            outcome = self.probe(candidate)
            tried.append(str(candidate))

            if outcome.status is CandidateStatus.LOADED:
                logger.info(f"Booting {candidate} ({outcome.image.size} bytes)")
                return outcome.image

            if outcome.status is CandidateStatus.FAILED:
                msg = f"I/O error reading boot candidate {candidate}"
                raise LoaderIOError(
                    msg,
                    details=outcome.reason,
                    original_error=outcome.error,
                ) from outcome.error

            logger.debug("Skipping boot candidate %s: %s", candidate, outcome.reason)

        raise NoBootFoundError(tried=tried)

    def probe(self, candidate: BootCandidate) -> CandidateOutcome:
        try:
            if candidate.source is BootSource.VOLUME:
                data = self._read_volume(candidate.location)
            else:
                data = self._read_local(Path(candidate.location))
        except (FileNotFoundError, NotFoundError):
            return CandidateOutcome.skipped(candidate, "not found")
        except MalformedError as e:
            return CandidateOutcome.skipped(candidate, f"malformed: {e}")
        except OSError as e:
            return CandidateOutcome.failed(candidate, e)

        if not data:
            return CandidateOutcome.skipped(candidate, "empty")
        return CandidateOutcome.loaded(candidate, data)

    def _read_local(self, path: Path) -> bytes:
        if path.stat().st_size == 0:
            return b""
        return path.read_bytes()

    def _read_volume(self, name: str) -> bytes:
        if self.volume is None:
            msg = f"No volume available to read {name}"
            raise ValueError(msg)
        return self.volume.read_file(name)


def game_boot_candidates(
    disc_id: str,
    config: LoaderConfig,
    *,
    buffering: bool = False,
) -> list[BootCandidate]:
    """Canonical boot chain for game discs, highest priority first.

    Previously decrypted images come first. Some titles ship an invalid
    BOOT.BIN next to a valid EBOOT.BIN, so BOOT.BIN is the last resort.
    """
    locations: list[tuple[BootSource, str]] = []
    if not buffering and not is_sentinel_disc_id(disc_id):
        locations.append(
            (
                BootSource.CACHED_DECRYPTED,
                str(config.decrypted_cache_dir / f"{disc_id}{DECRYPTED_IMAGE_SUFFIX}"),
            ),
        )
        locations.append(
            (
                BootSource.TEMP_DECRYPTED,
                str(config.disc_tmp_dir / disc_id / "EBOOT.BIN"),
            ),
        )
    locations.extend(
        [
            (BootSource.VOLUME, LEGACY_BOOT_ENTRY),
            (BootSource.VOLUME, PRIMARY_BOOT_ENTRY),
            (BootSource.VOLUME, SECONDARY_BOOT_ENTRY),
        ],
    )
    return [
        BootCandidate(source=source, location=location, priority=priority)
        for priority, (source, location) in enumerate(locations)
    ]
