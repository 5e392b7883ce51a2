"""Content-kind detection for opened media."""

import logging
from enum import Enum

from umdloader.error_handling import LoaderIOError
from umdloader.media.volume import Volume

logger = logging.getLogger(__name__)

GAME_PARAM_SFO = "PSP_GAME/param.sfo"
VIDEO_PARAM_SFO = "UMD_VIDEO/param.sfo"
AUDIO_PARAM_SFO = "UMD_AUDIO/param.sfo"


class ContentKind(Enum):
    """What a piece of media contains."""

    GAME = "game"
    VIDEO = "video"
    AUDIO = "audio"
    RAW_EXECUTABLE = "raw_executable"
    UNKNOWN = "unknown"

    @property
    def is_media(self) -> bool:
        """Disc content tracked in the UMD history."""
        return self in (ContentKind.GAME, ContentKind.VIDEO, ContentKind.AUDIO)


# Probed in order, first match wins
MARKER_FILES: tuple[tuple[str, ContentKind], ...] = (
    (GAME_PARAM_SFO, ContentKind.GAME),
    (VIDEO_PARAM_SFO, ContentKind.VIDEO),
    (AUDIO_PARAM_SFO, ContentKind.AUDIO),
)


class ContentInspector:
    """Classifies a volume by probing well-known marker entries."""

    def classify(self, volume: Volume) -> ContentKind:
        try:
            for marker, kind in MARKER_FILES:
                if volume.has_file(marker):
                    logger.debug("Found %s in %s", marker, volume.path)
                    return kind

            if volume.has_psp_data():
                return ContentKind.RAW_EXECUTABLE
        except OSError as e:
            msg = f"I/O error while inspecting {volume.path}"
            raise LoaderIOError(msg, details=str(e), original_error=e) from e

        return ContentKind.UNKNOWN

    def param_sfo_for(self, kind: ContentKind) -> str | None:
        """Marker entry holding the metadata for a media kind."""
        for marker, marker_kind in MARKER_FILES:
            if marker_kind is kind:
                return marker
        return None
