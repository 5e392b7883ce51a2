"""Essential CLI interface tests - commands and load workflow integration."""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from media_builders import ELF_IMAGE, make_game_disc, make_tree
from umdloader.cli import cli, format_firmware


@pytest.fixture
def cli_runner():
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture
def config_file(tmp_path):
    """Configuration file keeping all state under tmp_path."""
    path = tmp_path / "umdloader.toml"
    path.write_text(
        f'state_dir = "{tmp_path / "state"}"\n'
        f'log_dir = "{tmp_path / "logs"}"\n'
        f'decrypted_cache_dir = "{tmp_path / "decrypted"}"\n'
        f'disc_tmp_dir = "{tmp_path / "tmp"}"\n',
    )
    return path


@pytest.fixture
def game_disc(tmp_path):
    return make_game_disc(tmp_path / "discs" / "cube")


@pytest.fixture
def invoke(cli_runner, config_file):
    def run(*args, **kwargs):
        return cli_runner.invoke(cli, ["-c", str(config_file), *map(str, args)], **kwargs)

    return run


class TestCLIBasics:
    """Test essential CLI functionality."""

    def test_cli_entry_point(self, cli_runner):
        """Test CLI entry point is accessible."""
        result = cli_runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "umdloader" in result.output.lower()

    def test_invalid_config_file(self, cli_runner, tmp_path):
        """Test a config file that fails validation aborts startup."""
        bad_config = tmp_path / "bad.toml"
        bad_config.write_text("mru_capacity = 0\n")

        result = cli_runner.invoke(cli, ["-c", str(bad_config), "config", "show"])

        assert result.exit_code == 1
        assert "Configuration Error" in result.output


class TestConfigCommands:
    """Test configuration commands."""

    def test_config_show(self, invoke):
        result = invoke("config", "show")

        assert result.exit_code == 0
        assert "Recent Capacity" in result.output
        assert "6.60" in result.output

    def test_config_validate(self, invoke, tmp_path):
        result = invoke("config", "validate")

        assert result.exit_code == 0
        assert "Configuration is valid" in result.output
        assert (tmp_path / "decrypted").is_dir()

    def test_config_init(self, cli_runner, tmp_path):
        target = tmp_path / "new" / "config.toml"

        result = cli_runner.invoke(cli, ["config", "init", "--path", str(target)])

        assert result.exit_code == 0
        assert target.exists()


class TestLoadCommands:
    """Test load-umd and load-file."""

    def test_load_umd(self, invoke, game_disc):
        result = invoke("load-umd", game_disc)

        assert result.exit_code == 0
        assert "Cube Runner [ULUS10041]" in result.output
        assert "3.52" in result.output
        assert "Running" not in result.output

    def test_load_creates_directories(self, invoke, game_disc, tmp_path):
        result = invoke("load-umd", game_disc)

        assert result.exit_code == 0
        assert (tmp_path / "state" / "settings.db").exists()
        assert (tmp_path / "decrypted").is_dir()
        assert (tmp_path / "tmp").is_dir()

    def test_load_umd_and_run(self, invoke, game_disc):
        result = invoke("load-umd", game_disc, "--run")

        assert result.exit_code == 0
        assert "Running Cube Runner" in result.output

    def test_load_unknown_media(self, invoke, tmp_path):
        junk = make_tree(tmp_path / "junk", {"notes.txt": b"hello"})

        result = invoke("load-umd", junk)

        assert result.exit_code == 1
        assert "Unsupported Error" in result.output

    def test_load_encrypted_game(self, invoke, tmp_path):
        disc = make_game_disc(tmp_path / "encrypted", boot_files={})

        result = invoke("load-umd", disc)

        assert result.exit_code == 1
        assert "Encrypted or unrecognized boot image" in result.output

    def test_load_file(self, invoke, tmp_path):
        folder = tmp_path / "hb"
        folder.mkdir()
        executable = folder / "boot.elf"
        executable.write_bytes(ELF_IMAGE)

        result = invoke("load-file", executable)

        assert result.exit_code == 0
        assert "9.99" in result.output

    def test_missing_path_rejected(self, invoke, tmp_path):
        result = invoke("load-umd", tmp_path / "nowhere")

        assert result.exit_code == 2


class TestInspectCommand:
    """Test the inspect command."""

    def test_inspect_game(self, invoke, game_disc):
        result = invoke("inspect", game_disc)

        assert result.exit_code == 0
        assert "Game" in result.output
        assert "ULUS10041" in result.output
        assert "Boot candidates" in result.output
        assert "loaded" in result.output

    def test_inspect_io_error(self, invoke, game_disc):
        with patch(
            "umdloader.cli.extract_media_metadata",
            side_effect=PermissionError("denied"),
        ):
            result = invoke("inspect", game_disc)

        assert result.exit_code == 1
        assert "Io Error" in result.output
        assert "denied" in result.output

    def test_inspect_unknown(self, invoke, tmp_path):
        junk = make_tree(tmp_path / "junk", {"notes.txt": b"hello"})

        result = invoke("inspect", junk)

        assert result.exit_code == 0
        assert "Unknown" in result.output


class TestRecentCommands:
    """Test recent history commands."""

    def test_empty_history(self, invoke):
        result = invoke("recent", "list")

        assert result.exit_code == 0
        assert "No recent items" in result.output

    def test_history_persists_between_runs(self, invoke, game_disc):
        invoke("load-umd", game_disc)

        result = invoke("recent", "list", "--kind", "umd")

        assert result.exit_code == 0
        assert "Cube Runner" in result.output

    def test_open_recent(self, invoke, game_disc):
        invoke("load-umd", game_disc)

        result = invoke("recent", "open", "umd", "1")

        assert result.exit_code == 0
        assert "Cube Runner [ULUS10041]" in result.output

    def test_open_recent_out_of_range(self, invoke):
        result = invoke("recent", "open", "file", "3")

        assert result.exit_code == 1
        assert "No file entry #3" in result.output

    def test_open_recent_vanished_entry(self, invoke, game_disc):
        import shutil

        invoke("load-umd", game_disc)
        shutil.rmtree(game_disc)

        result = invoke("recent", "open", "umd", "1")

        assert result.exit_code == 1
        assert "Not Found Error" in result.output
        assert "No recent items" in invoke("recent", "list").output

    def test_remove(self, invoke, game_disc):
        invoke("load-umd", game_disc)

        result = invoke("recent", "remove", "umd", game_disc.resolve())

        assert result.exit_code == 0
        assert "No recent items" in invoke("recent", "list").output

    def test_clear(self, invoke, game_disc):
        invoke("load-umd", game_disc)

        result = invoke("recent", "clear", "umd", "--yes")

        assert result.exit_code == 0
        assert "Cleared recent umd list" in result.output
        assert "No recent items" in invoke("recent", "list").output

    def test_clear_requires_confirmation(self, invoke, game_disc):
        invoke("load-umd", game_disc)

        result = invoke("recent", "clear", "umd", input="n\n")

        assert "Cleared" not in result.output
        assert "Cube Runner" in invoke("recent", "list").output


class TestFormatting:
    """Test output helpers."""

    @pytest.mark.parametrize(
        ("version", "expected"),
        [(660, "6.60"), (352, "3.52"), (999, "9.99"), (None, "-")],
    )
    def test_format_firmware(self, version, expected):
        assert format_firmware(version) == expected
