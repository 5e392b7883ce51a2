"""Volume readers: query loadable media by entry name."""

from __future__ import annotations

import logging
import struct
from collections.abc import Callable
from pathlib import Path
from typing import BinaryIO, Protocol, TypeVar

from umdloader.error_handling import LoaderIOError, MalformedError, NotFoundError

logger = logging.getLogger(__name__)

PBP_MAGIC = b"\x00PBP"
ELF_MAGIC = b"\x7fELF"
PSP_MODULE_MAGIC = b"~PSP"  # encrypted/compressed PRX header

DEFAULT_PACKAGE = "EBOOT.PBP"

PBP_SECTIONS = (
    "PARAM.SFO",
    "ICON0.PNG",
    "ICON1.PMF",
    "PIC0.PNG",
    "PIC1.PNG",
    "SND0.AT3",
    "DATA.PSP",
    "DATA.PSAR",
)

_PBP_HEADER = struct.Struct("<4sI8I")

T = TypeVar("T")


class Volume(Protocol):
    """An opened handle to a disc tree, package or executable."""

    path: Path
    closed: bool

    def has_file(self, name: str) -> bool: ...

    def read_file(self, name: str) -> bytes: ...

    def has_psp_data(self) -> bool: ...

    def read_psp_data(self) -> bytes | None: ...

    def read_package_metadata(self) -> bytes | None: ...

    def close(self) -> None: ...


VolumeReader = Callable[[Path], Volume]


class _VolumeBase:
    def __init__(self, path: Path):
        self.path = path
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.closed = True

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self.path)!r})"


class PbpPackage:
    """Section table of a PBP package held in an open binary file."""

    def __init__(self, handle: BinaryIO, size: int):
        header = handle.read(_PBP_HEADER.size)
        if len(header) < _PBP_HEADER.size:
            msg = "PBP header truncated"
            raise MalformedError(msg)
        magic, _version, *offsets = _PBP_HEADER.unpack(header)
        if magic != PBP_MAGIC:
            msg = f"Invalid PBP magic {magic!r}"
            raise MalformedError(msg)

        bounds = [*offsets, size]
        self.handle = handle
        self.sections: dict[str, tuple[int, int]] = {}
        for index, name in enumerate(PBP_SECTIONS):
            start, end = bounds[index], bounds[index + 1]
            if start > end or end > size:
                msg = f"PBP section {name} has invalid bounds {start}..{end}"
                raise MalformedError(msg)
            self.sections[name] = (start, end - start)

    def section_size(self, name: str) -> int:
        return self.sections.get(name.upper(), (0, 0))[1]

    def read_section(self, name: str) -> bytes | None:
        start, length = self.sections.get(name.upper(), (0, 0))
        if length == 0:
            return None
        self.handle.seek(start)
        return self.handle.read(length)


class DirectoryVolume(_VolumeBase):
    """An extracted disc tree or game folder on the local filesystem.

    Entry names are matched case-insensitively, as on ISO9660 media.
    """

    def _resolve(self, name: str) -> Path | None:
        current = self.path
        for part in name.replace("\\", "/").strip("/").split("/"):
            candidate = current / part
            if candidate.exists():
                current = candidate
                continue
            if not current.is_dir():
                return None
            matches = [child for child in current.iterdir() if child.name.upper() == part.upper()]
            if not matches:
                return None
            current = matches[0]
        return current

    def has_file(self, name: str) -> bool:
        resolved = self._resolve(name)
        return resolved is not None and resolved.is_file()

    def read_file(self, name: str) -> bytes:
        resolved = self._resolve(name)
        if resolved is None or not resolved.is_file():
            msg = f"{name} not found in {self.path}"
            raise NotFoundError(msg, path=name)
        return resolved.read_bytes()

    def _with_package(self, reader: Callable[[PbpPackage], T]) -> T | None:
        package_path = self._resolve(DEFAULT_PACKAGE)
        if package_path is None or not package_path.is_file():
            return None
        with open(package_path, "rb") as handle:
            try:
                package = PbpPackage(handle, package_path.stat().st_size)
            except MalformedError as e:
                logger.warning(f"Ignoring malformed {package_path}: {e}")
                return None
            return reader(package)

    def has_psp_data(self) -> bool:
        return bool(self._with_package(lambda package: package.section_size("DATA.PSP")))

    def read_psp_data(self) -> bytes | None:
        return self._with_package(lambda package: package.read_section("DATA.PSP"))

    def read_package_metadata(self) -> bytes | None:
        return self._with_package(lambda package: package.read_section("PARAM.SFO"))


class PackageVolume(_VolumeBase):
    """A single PBP package file (EBOOT.PBP)."""

    def __init__(self, path: Path):
        super().__init__(path)
        self._handle = open(path, "rb")
        try:
            self._package = PbpPackage(self._handle, path.stat().st_size)
        except Exception:
            self._handle.close()
            raise

    def has_file(self, name: str) -> bool:
        return self._package.section_size(name) > 0

    def read_file(self, name: str) -> bytes:
        data = self._package.read_section(name)
        if data is None:
            msg = f"{name} not found in {self.path}"
            raise NotFoundError(msg, path=name)
        return data

    def has_psp_data(self) -> bool:
        return self._package.section_size("DATA.PSP") > 0

    def read_psp_data(self) -> bytes | None:
        return self._package.read_section("DATA.PSP")

    def read_package_metadata(self) -> bytes | None:
        return self._package.read_section("PARAM.SFO")

    def close(self) -> None:
        if not self.closed:
            self._handle.close()
        super().close()


class ExecutableVolume(_VolumeBase):
    """A bare ELF or PRX module; it holds no named entries."""

    def has_file(self, name: str) -> bool:
        return False

    def read_file(self, name: str) -> bytes:
        msg = f"{self.path} is a bare executable without entries"
        raise NotFoundError(msg, path=name)

    def has_psp_data(self) -> bool:
        with open(self.path, "rb") as f:
            return f.read(4) in (ELF_MAGIC, PSP_MODULE_MAGIC)

    def read_psp_data(self) -> bytes | None:
        if not self.has_psp_data():
            return None
        return self.path.read_bytes()

    def read_package_metadata(self) -> bytes | None:
        return None


def open_volume(path: Path) -> Volume:
    """Open a media path with the reader matching its layout."""
    path = Path(path)
    if not path.exists():
        msg = f"Media not found: {path}"
        raise NotFoundError(msg, path=path)

    try:
        if path.is_dir():
            return DirectoryVolume(path)
        with open(path, "rb") as f:
            magic = f.read(4)
        if magic == PBP_MAGIC:
            return PackageVolume(path)
        return ExecutableVolume(path)
    except OSError as e:
        msg = f"Cannot open {path}"
        raise LoaderIOError(msg, details=str(e), original_error=e) from e
