from __future__ import annotations

from pathlib import Path

import pytest

from fcctl.core.config_loader import FileConfig, build_options, load_config
from fcctl.core.errors import ConfigLoadError, ConfigValidationError


def _write_config(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


@pytest.fixture
def config_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    return tmp_path / "cfg" / "fcctl" / "config.yaml"


def test_missing_default_config_gives_empty_settings(config_home: Path) -> None:
    assert load_config() == FileConfig()


def test_load_config_values(config_home: Path) -> None:
    _write_config(
        config_home,
        """
port: /dev/ttyACM0
baud_rate: 230400
enable_debug_trace: true
codec: msp-v1
source_dir: /src/inav
target: OMNIBUSF4
retry_interval_s: 0.5
""",
    )

    config = load_config()
    assert config.port == "/dev/ttyACM0"
    assert config.baud_rate == 230400
    assert config.enable_debug_trace is True
    assert config.codec == "msp-v1"
    assert config.source_dir == Path("/src/inav")
    assert config.target == "OMNIBUSF4"
    assert config.retry_interval_s == 0.5
    assert config.source == config_home


def test_yaml_on_off_words_are_accepted_for_flags(config_home: Path) -> None:
    _write_config(config_home, "port: COM3\nenable_debug_trace: on\n")
    assert load_config().enable_debug_trace is True


def test_duplicate_keys_rejected(config_home: Path) -> None:
    _write_config(config_home, "port: /dev/ttyACM0\nport: /dev/ttyACM1\n")
    with pytest.raises(ConfigValidationError, match="Duplicate key 'port'"):
        load_config()


def test_unknown_key_rejected(config_home: Path) -> None:
    _write_config(config_home, "port: /dev/ttyACM0\nparity: even\n")
    with pytest.raises(ConfigValidationError):
        load_config()


def test_wrong_type_names_the_field(config_home: Path) -> None:
    _write_config(config_home, "baud_rate: fast\n")
    with pytest.raises(ConfigValidationError, match="baud_rate"):
        load_config()


def test_non_mapping_root_rejected(config_home: Path) -> None:
    _write_config(config_home, "- /dev/ttyACM0\n")
    with pytest.raises(ConfigValidationError):
        load_config()


def test_explicit_missing_path_is_load_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError):
        load_config(tmp_path / "nope.yaml")


def test_build_options_overrides_file_values() -> None:
    config = FileConfig(port="/dev/ttyACM0", baud_rate=230400, enable_debug_trace=True, target="OMNIBUSF4")

    options = build_options(config, port="/dev/ttyUSB0", target="MATEKF405")

    assert options.port == "/dev/ttyUSB0"
    assert options.baud_rate == 230400
    assert options.enable_debug_trace is True
    assert options.target == "MATEKF405"
    assert options.source_dir == Path(".")


def test_build_options_defaults() -> None:
    options = build_options(FileConfig(), port="/dev/ttyACM0")
    assert options.baud_rate == 115200
    assert options.enable_debug_trace is False
    assert options.retry_interval_s == 0.001
    assert options.codec is None


def test_build_options_requires_port() -> None:
    with pytest.raises(ConfigValidationError, match="--port"):
        build_options(FileConfig())
