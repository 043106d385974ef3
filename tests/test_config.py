import json

import pytest

from palmchord.config import ConfigurationError, PalmChordConfig


def test_defaults():
    config = PalmChordConfig()
    assert config.base_pitch == 42
    assert config.midi_channel == 2
    assert config.x_range == (-300, 300)
    assert config.y_range == (500, 220)
    assert config.z_range == (-100, 0)
    assert config.chord_offsets == (6, 0, 2, 4)


@pytest.mark.parametrize(
    "overrides",
    [
        dict(midi_channel=0),
        dict(midi_channel=17),
        dict(base_pitch=128),
        dict(base_pitch=120),
        dict(scale_octaves=0),
        dict(scale_intervals=()),
        dict(scale_intervals=(0, 2, 2)),
        dict(scale_intervals=(0, 12)),
        dict(chord_offsets=()),
        dict(moving_average_window=0),
        dict(min_x=10, max_x=10),
        dict(min_y=float('nan')),
        dict(min_duration_ms=0),
        dict(min_duration_ms=6000),
        dict(min_rate=0.9),
        dict(attack=200),
        dict(envelope_ccs=(1, 2, 3)),
        dict(screen_width=0),
    ],
)
def test_invalid_configs(overrides):
    with pytest.raises(ConfigurationError):
        PalmChordConfig(**overrides)


def test_configuration_error_is_a_value_error():
    assert issubclass(ConfigurationError, ValueError)


def test_with_overrides_ignores_none():
    config = PalmChordConfig().with_overrides(base_pitch=40, midi_channel=None)
    assert config.base_pitch == 40
    assert config.midi_channel == 2


def test_with_overrides_validates():
    with pytest.raises(ConfigurationError):
        PalmChordConfig().with_overrides(midi_channel=99)


def test_from_json(tmp_path):
    filepath = tmp_path / 'config.json'
    filepath.write_text(
        json.dumps({'base_pitch': 40, 'scale_intervals': [0, 2, 3, 5, 7, 8, 10]})
    )
    config = PalmChordConfig.from_json(filepath)
    assert config.base_pitch == 40
    assert config.scale_intervals == (0, 2, 3, 5, 7, 8, 10)


def test_dict_round_trip():
    config = PalmChordConfig(base_pitch=30, midi_channel=10)
    assert PalmChordConfig.from_dict(config.to_dict()) == config


def test_unknown_keys_are_rejected():
    with pytest.raises(ConfigurationError):
        PalmChordConfig.from_dict({'base_pich': 40})
