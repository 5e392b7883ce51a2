"""Tests for boot image resolution."""

from unittest.mock import Mock, call

import pytest

from media_builders import ELF_IMAGE, make_game_disc
from umdloader.error_handling import (
    ErrorCategory,
    LoaderIOError,
    MalformedError,
    NoBootFoundError,
    NotFoundError,
)
from umdloader.media.boot import (
    LEGACY_BOOT_ENTRY,
    PRIMARY_BOOT_ENTRY,
    SECONDARY_BOOT_ENTRY,
    BootCandidate,
    BootResolver,
    BootSource,
    CandidateStatus,
    game_boot_candidates,
)
from umdloader.media.metadata import DISCID_UNKNOWN_UMD
from umdloader.media.volume import DirectoryVolume


def volume_candidates(*names):
    return [
        BootCandidate(source=BootSource.VOLUME, location=name, priority=priority)
        for priority, name in enumerate(names)
    ]


def fake_volume(files):
    """Mock volume whose read_file serves from a dict or raises per entry."""
    volume = Mock()

    def read_file(name):
        value = files.get(name)
        if value is None:
            raise NotFoundError(f"{name} not found", path=name)
        if isinstance(value, Exception):
            raise value
        return value

    volume.read_file.side_effect = read_file
    return volume


class TestBootResolver:
    """Test first-success resolution over ordered candidates."""

    def test_first_present_candidate_wins(self):
        volume = fake_volume({"c": b"12345", "d": b"0123456789"})
        resolver = BootResolver(volume)

        image = resolver.resolve(volume_candidates("a", "b", "c", "d"))

        assert image.data == b"12345"
        assert image.size == 5
        assert image.candidate.location == "c"
        assert volume.read_file.call_args_list == [call("a"), call("b"), call("c")]

    def test_candidates_are_probed_by_priority(self):
        volume = fake_volume({"low": b"low", "high": b"high"})
        candidates = [
            BootCandidate(BootSource.VOLUME, "low", priority=5),
            BootCandidate(BootSource.VOLUME, "high", priority=1),
        ]

        image = BootResolver(volume).resolve(candidates)

        assert image.data == b"high"

    def test_all_missing(self):
        resolver = BootResolver(fake_volume({}))

        with pytest.raises(NoBootFoundError) as exc_info:
            resolver.resolve(volume_candidates("a", "b"))

        error = exc_info.value
        assert error.category is ErrorCategory.NO_BOOT_FOUND
        assert error.tried == ["disc0:/a", "disc0:/b"]
        assert "disc0:/a" in error.details

    def test_empty_candidate_is_skipped(self):
        volume = fake_volume({"a": b"", "b": b"boot"})

        image = BootResolver(volume).resolve(volume_candidates("a", "b"))

        assert image.candidate.location == "b"

    def test_malformed_candidate_is_skipped(self):
        volume = fake_volume({"a": MalformedError("bad header"), "b": b"boot"})

        image = BootResolver(volume).resolve(volume_candidates("a", "b"))

        assert image.data == b"boot"

    def test_io_fault_aborts_resolution(self):
        volume = fake_volume({"a": PermissionError("denied"), "b": b"boot"})

        with pytest.raises(LoaderIOError) as exc_info:
            BootResolver(volume).resolve(volume_candidates("a", "b"))

        assert isinstance(exc_info.value.original_error, PermissionError)
        assert volume.read_file.call_args_list == [call("a")]

    def test_empty_candidate_list(self):
        with pytest.raises(NoBootFoundError):
            BootResolver(fake_volume({})).resolve([])

    def test_local_candidates(self, tmp_path):
        cached = tmp_path / "ULUS10041.BIN"
        cached.write_bytes(ELF_IMAGE)
        candidates = [
            BootCandidate(BootSource.CACHED_DECRYPTED, str(tmp_path / "missing.BIN"), 0),
            BootCandidate(BootSource.TEMP_DECRYPTED, str(cached), 1),
        ]

        image = BootResolver().resolve(candidates)

        assert image.data == ELF_IMAGE
        assert str(image.candidate) == str(cached)

    def test_empty_local_file_is_skipped(self, tmp_path):
        empty = tmp_path / "EMPTY.BIN"
        empty.write_bytes(b"")
        resolver = BootResolver()

        outcome = resolver.probe(BootCandidate(BootSource.CACHED_DECRYPTED, str(empty), 0))

        assert outcome.status is CandidateStatus.SKIPPED
        assert outcome.reason == "empty"


class TestGameBootCandidates:
    """Test the canonical boot chain for game discs."""

    def test_full_chain(self, loader_config):
        candidates = game_boot_candidates("ULUS10041", loader_config)

        assert [c.source for c in candidates] == [
            BootSource.CACHED_DECRYPTED,
            BootSource.TEMP_DECRYPTED,
            BootSource.VOLUME,
            BootSource.VOLUME,
            BootSource.VOLUME,
        ]
        assert candidates[0].location == str(loader_config.decrypted_cache_dir / "ULUS10041.BIN")
        assert candidates[1].location == str(loader_config.disc_tmp_dir / "ULUS10041" / "EBOOT.BIN")
        assert [c.location for c in candidates[2:]] == [
            LEGACY_BOOT_ENTRY,
            PRIMARY_BOOT_ENTRY,
            SECONDARY_BOOT_ENTRY,
        ]
        assert [c.priority for c in candidates] == [0, 1, 2, 3, 4]

    def test_unknown_disc_skips_cached_images(self, loader_config):
        candidates = game_boot_candidates(DISCID_UNKNOWN_UMD, loader_config)

        assert all(c.source is BootSource.VOLUME for c in candidates)
        assert len(candidates) == 3

    def test_buffering_skips_cached_images(self, loader_config):
        candidates = game_boot_candidates("ULUS10041", loader_config, buffering=True)

        assert [c.location for c in candidates] == [
            LEGACY_BOOT_ENTRY,
            PRIMARY_BOOT_ENTRY,
            SECONDARY_BOOT_ENTRY,
        ]

    def test_candidate_display(self, loader_config):
        candidates = game_boot_candidates(DISCID_UNKNOWN_UMD, loader_config)

        assert str(candidates[1]) == "disc0:/PSP_GAME/SYSDIR/EBOOT.BIN"


class TestResolveOnDisc:
    """Test the boot chain against extracted disc trees."""

    def test_eboot_preferred_over_boot_bin(self, tmp_path, loader_config):
        root = make_game_disc(
            tmp_path / "disc",
            boot_files={"EBOOT.BIN": ELF_IMAGE, "BOOT.BIN": b"invalid boot"},
        )

        image = BootResolver(DirectoryVolume(root)).resolve(
            game_boot_candidates("ULUS10041", loader_config),
        )

        assert image.candidate.location == PRIMARY_BOOT_ENTRY

    def test_cached_decrypted_image_wins(self, tmp_path, loader_config):
        root = make_game_disc(tmp_path / "disc")
        loader_config.decrypted_cache_dir.mkdir(parents=True)
        (loader_config.decrypted_cache_dir / "ULUS10041.BIN").write_bytes(b"decrypted")

        image = BootResolver(DirectoryVolume(root)).resolve(
            game_boot_candidates("ULUS10041", loader_config),
        )

        assert image.candidate.source is BootSource.CACHED_DECRYPTED
        assert image.data == b"decrypted"

    def test_encrypted_disc_without_entries(self, tmp_path, loader_config):
        root = make_game_disc(tmp_path / "disc", boot_files={})

        with pytest.raises(NoBootFoundError) as exc_info:
            BootResolver(DirectoryVolume(root)).resolve(
                game_boot_candidates("ULUS10041", loader_config),
            )

        assert len(exc_info.value.tried) == 5
