"""PSF (param.sfo) metadata parsing."""

import logging
import re
import struct
from dataclasses import dataclass, field

from umdloader.error_handling import MalformedError

logger = logging.getLogger(__name__)

PSF_MAGIC = b"\x00PSF"

_HEADER = struct.Struct("<4sIIII")
_INDEX_ENTRY = struct.Struct("<HHIII")

FORMAT_UTF8_SPECIAL = 0x0004  # not NUL terminated
FORMAT_UTF8 = 0x0204
FORMAT_INT32 = 0x0404

# Values the homebrew SDK writes into every generated param.sfo
_SDK_TEMPLATE: dict[str, str | int] = {
    "DISC_ID": "UCJS10041",
    "DISC_VERSION": "1.00",
    "CATEGORY": "MG",
    "BOOTABLE": 1,
    "REGION": 32768,
    "PSP_SYSTEM_VER": "1.00",
    "PARENTAL_LEVEL": 1,
}

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]+")


@dataclass
class PsfMetadata:
    """Decoded key/value fields of a PSF structure."""

    values: dict[str, str | int] = field(default_factory=dict)
    version: int = 0x0101

    def __contains__(self, key: object) -> bool:
        return key in self.values

    def __len__(self) -> int:
        return len(self.values)

    def get_string(self, key: str) -> str | None:
        value = self.values.get(key)
        if value is None:
            return None
        return str(value)

    def get_numeric(self, key: str, default: int = 0) -> int:
        value = self.values.get(key)
        if isinstance(value, int):
            return value
        return default

    def get_printable_string(self, key: str) -> str | None:
        """String value with control characters (line breaks in titles) collapsed."""
        value = self.get_string(key)
        if value is None:
            return None
        return _CONTROL_CHARS.sub(" ", value).strip()

    def is_likely_homebrew(self) -> bool:
        """Guess whether the PSF was generated by the homebrew SDK.

        Commercial titles always carry a DISC_ID; homebrew either omits it or
        ships the untouched SDK template values.
        """
        if self.get_string("DISC_ID") is None:
            return True

        matches_template = all(
            self.values.get(key) == value for key, value in _SDK_TEMPLATE.items()
        )
        if not matches_template:
            return False
        # The SDK template has 8 entries, 9 when MEMSIZE is requested
        extra = set(self.values) - set(_SDK_TEMPLATE) - {"TITLE", "MEMSIZE"}
        return not extra


def parse_psf(data: bytes) -> PsfMetadata:
    """Decode a PSF structure.

    Raises MalformedError when the header, index or tables are inconsistent.
    """
    if len(data) < _HEADER.size:
        msg = f"PSF too short ({len(data)} bytes)"
        raise MalformedError(msg)

    magic, version, key_table, data_table, count = _HEADER.unpack_from(data, 0)
    if magic != PSF_MAGIC:
        msg = f"Invalid PSF magic {magic!r}"
        raise MalformedError(msg)

    index_end = _HEADER.size + count * _INDEX_ENTRY.size
    if index_end > len(data) or key_table > len(data) or data_table > len(data):
        msg = f"PSF index with {count} entries exceeds {len(data)} bytes"
        raise MalformedError(msg)

    metadata = PsfMetadata(version=version)
    for i in range(count):
        key_offset, fmt, length, _max_length, value_offset = _INDEX_ENTRY.unpack_from(
            data,
            _HEADER.size + i * _INDEX_ENTRY.size,
        )
        key = _read_key(data, key_table + key_offset)
        start = data_table + value_offset
        if start + length > len(data):
            msg = f"PSF value for {key} runs past end of data"
            raise MalformedError(msg)
        raw = data[start : start + length]

        if fmt == FORMAT_INT32:
            if length < 4:
                msg = f"PSF int32 value for {key} is {length} bytes"
                raise MalformedError(msg)
            metadata.values[key] = struct.unpack_from("<i", raw)[0]
        elif fmt in (FORMAT_UTF8, FORMAT_UTF8_SPECIAL):
            metadata.values[key] = raw.split(b"\x00", 1)[0].decode("utf-8", errors="replace")
        else:
            logger.debug("Skipping PSF key %s with unknown format 0x%04X", key, fmt)

    return metadata


def _read_key(data: bytes, offset: int) -> str:
    end = data.find(b"\x00", offset)
    if offset >= len(data) or end == -1:
        msg = f"PSF key at offset {offset} is not terminated"
        raise MalformedError(msg)
    return data[offset:end].decode("ascii", errors="replace")

