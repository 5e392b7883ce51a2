"""Load orchestration: inspection, metadata, boot resolution and history."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

from umdloader.error_handling import (
    LoaderError,
    LoaderIOError,
    NotFoundError,
    UnsupportedMediaError,
)
from umdloader.media.boot import (
    BootCandidate,
    BootImage,
    BootResolver,
    BootSource,
    game_boot_candidates,
)
from umdloader.media.inspector import ContentInspector, ContentKind
from umdloader.media.metadata import (
    DISCID_UNKNOWN_NOTHING_LOADED,
    MediaMetadata,
    extract_file_metadata,
    extract_media_metadata,
    is_sentinel_disc_id,
    resolve_firmware_version,
)
from umdloader.media.volume import Volume, VolumeReader, open_volume
from umdloader.services.runtime import MEMORY_32MB, MEMORY_64MB
from umdloader.storage.recent import RecentKind

if TYPE_CHECKING:
    from umdloader.config import LoaderConfig
    from umdloader.services.runtime import RuntimeEnvironment
    from umdloader.storage.recent import RecentHistory

logger = logging.getLogger(__name__)


class LoadState(Enum):
    """Progress of the current load attempt."""

    IDLE = "idle"
    INSPECTING = "inspecting"
    RESOLVING_BOOT = "resolving_boot"
    READY = "ready"
    FAILED = "failed"


_ALLOWED_TRANSITIONS: dict[LoadState, frozenset[LoadState]] = {
    LoadState.IDLE: frozenset({LoadState.INSPECTING, LoadState.FAILED}),
    LoadState.INSPECTING: frozenset(
        {LoadState.RESOLVING_BOOT, LoadState.READY, LoadState.FAILED},
    ),
    LoadState.RESOLVING_BOOT: frozenset({LoadState.READY, LoadState.FAILED}),
    LoadState.READY: frozenset(),
    LoadState.FAILED: frozenset(),
}


@dataclass(frozen=True)
class LoadOptions:
    """Per-load toggles.

    umd_buffering skips locally cached boot images, internal loads (system
    modules) stay out of the history, run_after_load starts the runtime once
    the content is ready.
    """

    umd_buffering: bool = False
    internal: bool = False
    run_after_load: bool = False

    @classmethod
    def from_config(
        cls,
        config: LoaderConfig,
        *,
        run_after_load: bool | None = None,
        internal: bool = False,
    ) -> LoadOptions:
        return cls(
            umd_buffering=config.umd_buffering,
            internal=internal,
            run_after_load=config.load_and_run if run_after_load is None else run_after_load,
        )


@dataclass(frozen=True)
class MediaReference:
    """Published description of successfully loaded content."""

    path: str
    content_kind: ContentKind
    title: str
    disc_id: str
    firmware_version: int | None
    is_homebrew: bool
    memory_size_flag: bool
    umd_id: str | None = None
    boot_source: str | None = None

    @property
    def display_title(self) -> str:
        if is_sentinel_disc_id(self.disc_id):
            return self.title
        return f"{self.title} [{self.disc_id}]"


class LoadSession:
    """Owns the currently loaded content and drives each load attempt.

    A load runs synchronously and ends in READY or FAILED. Classified
    LoaderErrors are recorded in ``last_error`` rather than raised; anything
    else is recorded and re-raised. Callers must not start a load while
    another is in progress on the same session.
    """

    def __init__(
        self,
        config: LoaderConfig,
        history: RecentHistory,
        runtime: RuntimeEnvironment,
        *,
        volume_reader: VolumeReader = open_volume,
        inspector: ContentInspector | None = None,
    ):
        self.config = config
        self.history = history
        self.runtime = runtime
        self.volume_reader = volume_reader
        self.inspector = inspector or ContentInspector()

        self.state = LoadState.IDLE
        self.current_reference: MediaReference | None = None
        self.last_error: Exception | None = None
        self.disc_id = DISCID_UNKNOWN_NOTHING_LOADED
        self._last_request: tuple[Path, LoadOptions] | None = None

    @property
    def title(self) -> str | None:
        return self.current_reference.title if self.current_reference else None

    def load(
        self,
        path: Path | str,
        options: LoadOptions | None = None,
    ) -> MediaReference | None:
        """Load media or an executable; returns the reference when READY."""
        path = Path(path)
        options = options or LoadOptions.from_config(self.config)

        self._transition(LoadState.IDLE, reset=True)
        self.last_error = None

        volume: Volume | None = None
        handed_off = False
        try:
            self._transition(LoadState.INSPECTING)
            volume = self.volume_reader(path)
            kind = self.inspector.classify(volume)
            logger.info(f"Classified {path} as {kind.value}")

            if kind is ContentKind.UNKNOWN:
                msg = f"{path} is not a recognized UMD, package or executable"
                raise UnsupportedMediaError(msg)

            if kind is ContentKind.RAW_EXECUTABLE:
                metadata, image = self._inspect_executable(volume, options)
            else:
                metadata, image = self._resolve_media(volume, kind, options)

            reference = self._publish(path, kind, metadata, image, volume, options)
            handed_off = kind.is_media
        except LoaderError as e:
            self._fail(path, e)
            return None
        except OSError as e:
            self._fail(
                path,
                LoaderIOError(f"I/O error loading {path}", details=str(e), original_error=e),
            )
            return None
        except Exception as e:
            self._fail(path, e)
            raise
        finally:
            if volume is not None and not handed_off:
                volume.close()

        if options.run_after_load:
            self.runtime.run()
        return reference

    def reload(self) -> MediaReference | None:
        """Repeat the last successful load with the same options."""
        if self._last_request is None:
            logger.warning("Nothing has been loaded yet, cannot reload")
            return None
        path, options = self._last_request
        return self.load(path, options)

    def open_recent(
        self,
        kind: RecentKind,
        path: str,
        options: LoadOptions | None = None,
    ) -> MediaReference | None:
        """Load a history entry, dropping it from the history if it vanished."""
        recent = self.history.for_kind(kind)
        if not Path(path).exists():
            recent.remove(path)
            self._transition(LoadState.IDLE, reset=True)
            self._fail(
                Path(path),
                NotFoundError(f"Recent {kind.value} no longer exists: {path}", path=path),
            )
            return None

        recent.move_to_front(path)
        return self.load(path, options)

    def _resolve_media(
        self,
        volume: Volume,
        kind: ContentKind,
        options: LoadOptions,
    ) -> tuple[MediaMetadata, BootImage | None]:
        param_sfo = self.inspector.param_sfo_for(kind)
        metadata = extract_media_metadata(
            volume,
            param_sfo,
            game=kind is ContentKind.GAME,
        )
        logger.info(f"Title '{metadata.title}', disc id {metadata.disc_id}")

        self._transition(LoadState.RESOLVING_BOOT)
        if kind is not ContentKind.GAME:
            # Video and audio discs have nothing to boot
            return metadata, None

        candidates = game_boot_candidates(
            metadata.disc_id,
            self.config,
            buffering=options.umd_buffering,
        )
        return metadata, BootResolver(volume).resolve(candidates)

    def _inspect_executable(
        self,
        volume: Volume,
        options: LoadOptions,
    ) -> tuple[MediaMetadata, BootImage]:
        # Read once here, classification only sniffs the header
        data = volume.read_psp_data()
        if not data:
            msg = f"{volume.path} holds no executable data"
            raise UnsupportedMediaError(msg)

        metadata = extract_file_metadata(volume)
        if options.internal:
            metadata = MediaMetadata(
                title=metadata.title,
                disc_id=metadata.disc_id,
                is_homebrew=False,
                memory_size_flag=metadata.memory_size_flag,
                firmware_hint=metadata.firmware_hint,
            )

        candidate = BootCandidate(
            source=BootSource.EXECUTABLE,
            location=str(volume.path),
            priority=0,
        )
        return metadata, BootImage(candidate=candidate, data=data)

    def _publish(
        self,
        path: Path,
        kind: ContentKind,
        metadata: MediaMetadata,
        image: BootImage | None,
        volume: Volume,
        options: LoadOptions,
    ) -> MediaReference:
        reference = MediaReference(
            path=str(path.resolve()),
            content_kind=kind,
            title=metadata.title,
            disc_id=metadata.disc_id,
            firmware_version=resolve_firmware_version(
                metadata,
                self.config.default_firmware_version,
            ),
            is_homebrew=metadata.is_homebrew,
            memory_size_flag=metadata.memory_size_flag,
            umd_id=metadata.umd_id,
            boot_source=str(image.candidate) if image else None,
        )

        if not options.internal:
            recent_kind = RecentKind.UMD if kind.is_media else RecentKind.FILE
            self.history.for_kind(recent_kind).add(reference.path, reference.title)

        # The runtime only sees content once nothing else can fail
        self.runtime.configure_memory(self._memory_size(metadata))
        self.runtime.attach_volume(volume if kind.is_media else None)
        self.runtime.boot(reference, image)

        self.current_reference = reference
        self.disc_id = reference.disc_id
        self._last_request = (path, options)
        self._transition(LoadState.READY)
        return reference

    def _memory_size(self, metadata: MediaMetadata) -> int:
        if self.config.memory_size > 0:
            logger.info(
                f"Using memory size 0x{self.config.memory_size:X} from settings for {metadata.disc_id}",
            )
            return self.config.memory_size
        if self.config.memory_64mb:
            logger.info(f"Using 64MB memory from settings for {metadata.disc_id}")
            return MEMORY_64MB
        return MEMORY_64MB if metadata.memory_size_flag else MEMORY_32MB

    def _fail(self, path: Path, error: Exception) -> None:
        self.current_reference = None
        self.disc_id = DISCID_UNKNOWN_NOTHING_LOADED
        self.last_error = error
        logger.warning(f"Loading {path} failed: {error}")
        self._transition(LoadState.FAILED)

    def _transition(self, new_state: LoadState, *, reset: bool = False) -> None:
        if not reset and new_state not in _ALLOWED_TRANSITIONS[self.state]:
            msg = f"Invalid load state transition {self.state.value} -> {new_state.value}"
            raise RuntimeError(msg)
        logger.debug("Load state %s -> %s", self.state.value, new_state.value)
        self.state = new_state
