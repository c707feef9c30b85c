from pathlib import Path

import pytest

from app.config import StamperConfig
from app.errors import StamperError, WatermarkPlacementError


def test_defaults():
    config = StamperConfig()
    assert config.quality_factor == 4.0
    assert config.output_suffix == "_capgo"
    assert config.default_stamp_size == (105.0, 56.0)
    assert config.output_dir == Path.home() / "Downloads"


def test_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("CAPGO_OUTPUT_DIR", str(tmp_path))
    monkeypatch.setenv("CAPGO_QUALITY_FACTOR", "2.5")
    config = StamperConfig.from_env()
    assert config.output_dir == tmp_path
    assert config.quality_factor == 2.5


@pytest.mark.parametrize("kw", [{"quality_factor": 0}, {"zoom_min": 5.0}])
def test_rejects_bad_values(kw):
    with pytest.raises(ValueError):
        StamperConfig(**kw)


def test_error_str_includes_path():
    err = WatermarkPlacementError("bad page", "/tmp/a.pdf")
    assert isinstance(err, StamperError)
    assert str(err) == "bad page (/tmp/a.pdf)"
    assert str(StamperError("plain")) == "plain"
