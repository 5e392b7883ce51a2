"""Runtime environment interface and a dry-run implementation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from umdloader.components.load_session import MediaReference
    from umdloader.media.boot import BootImage
    from umdloader.media.volume import Volume

logger = logging.getLogger(__name__)

MEMORY_32MB = 32 * 1024 * 1024
MEMORY_64MB = 64 * 1024 * 1024


class RuntimeEnvironment(Protocol):
    """The emulated machine that executes loaded content."""

    def configure_memory(self, size: int) -> None: ...

    def attach_volume(self, volume: Volume | None) -> None: ...

    def boot(self, reference: MediaReference, image: BootImage | None) -> None: ...

    def run(self) -> None: ...


class DryRunRuntime:
    """Records what would be executed without executing anything.

    Owns the attached volume until new content replaces it or close() is
    called.
    """

    def __init__(self) -> None:
        self.memory_size = MEMORY_32MB
        self.volume: Volume | None = None
        self.reference: MediaReference | None = None
        self.image: BootImage | None = None
        self.running = False

    def configure_memory(self, size: int) -> None:
        self.memory_size = size
        logger.debug("Memory size set to 0x%X", size)

    def attach_volume(self, volume: Volume | None) -> None:
        if self.volume is not None and self.volume is not volume:
            self.volume.close()
        self.volume = volume

    def boot(self, reference: MediaReference, image: BootImage | None) -> None:
        self.reference = reference
        self.image = image
        self.running = False
        if image is None:
            logger.info(f"Loaded {reference.content_kind.value} content '{reference.title}'")
        else:
            logger.info(
                f"Loaded '{reference.title}' from {image.candidate} ({image.size} bytes)",
            )

    def run(self) -> None:
        if self.reference is None:
            logger.warning("Nothing loaded, cannot run")
            return
        self.running = True
        logger.info(f"Running '{self.reference.title}' (dry run)")

    def close(self) -> None:
        self.attach_volume(None)
        self.reference = None
        self.image = None
        self.running = False
