import pathlib

import pytest

import stepcast.config


def test_missing_file_uses_defaults (tmp_path: pathlib.Path) -> None:

	config = stepcast.config.load_config(str(tmp_path / "missing.yaml"))

	assert config == stepcast.config.Config()
	assert config.bpm == 120
	assert config.virtual is True


def test_yaml_overrides_defaults (tmp_path: pathlib.Path) -> None:

	path = tmp_path / "config.yaml"
	path.write_text("name: Grid\nbpm: 96.5\nbeats_per_bar: 3\noutput_device: IAC Bus 1\nlog_level: debug\n")

	config = stepcast.config.load_config(str(path))

	assert config.name == "Grid"
	assert config.bpm == 96.5
	assert config.beats_per_bar == 3
	assert config.output_device == "IAC Bus 1"
	assert config.input_device is None
	assert config.log_level == "debug"


def test_empty_file_uses_defaults (tmp_path: pathlib.Path) -> None:

	path = tmp_path / "config.yaml"
	path.write_text("")

	assert stepcast.config.load_config(str(path)) == stepcast.config.Config()


def test_unknown_keys_are_ignored (tmp_path: pathlib.Path, caplog: pytest.LogCaptureFixture) -> None:

	path = tmp_path / "config.yaml"
	path.write_text("bpm: 100\nswing: 0.6\n")

	config = stepcast.config.load_config(str(path))

	assert config.bpm == 100
	assert "swing" in caplog.text


@pytest.mark.parametrize("content", ["bpm: 0\n", "bpm: .nan\n", "bpm: .inf\n", "beats_per_bar: -1\n", "log_level: LOUD\n", "- just\n- a list\n"])
def test_invalid_values_raise (tmp_path: pathlib.Path, content: str) -> None:

	path = tmp_path / "config.yaml"
	path.write_text(content)

	with pytest.raises(ValueError):
		stepcast.config.load_config(str(path))
