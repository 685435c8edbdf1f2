import pytest

from gpxstages.config import (
    DEFAULT_CONTROL_RESUMPTION_METRES,
    DEFAULT_MIN_CONTROL_MINUTES,
    DEFAULT_STOPPED_SPEED_KMH,
    StageConfig,
    load_config,
    validate_accuracy_metres,
)
from gpxstages.errors import ConfigError

ENV_VARS = (
    "GPXSTAGES_STOPPED_SPEED_KMH",
    "GPXSTAGES_MIN_CONTROL_MINUTES",
    "GPXSTAGES_CONTROL_RESUMPTION_METRES",
    "GPXSTAGES_SIMPLIFY_METRES",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def _load(tmp_path, repo_text=None, user_text=None):
    repo = tmp_path / "repo.toml"
    user = tmp_path / "user.toml"
    if repo_text is not None:
        repo.write_text(repo_text, encoding="utf-8")
    if user_text is not None:
        user.write_text(user_text, encoding="utf-8")
    return load_config(repo_root=tmp_path, repo_config_path=repo, user_config_path=user)


def test_defaults_when_no_files(tmp_path):
    cfg = _load(tmp_path)
    assert cfg.stages == StageConfig(
        DEFAULT_STOPPED_SPEED_KMH, DEFAULT_MIN_CONTROL_MINUTES, DEFAULT_CONTROL_RESUMPTION_METRES
    )
    assert cfg.stages.min_control_seconds == 300.0
    assert cfg.simplify.accuracy_metres is None
    assert set(cfg.source.values()) == {"default"}


def test_user_overrides_repo(tmp_path):
    cfg = _load(
        tmp_path,
        repo_text="[stages]\nstopped_speed_kmh = 0.5\nmin_control_minutes = 10\n",
        user_text="[stages]\nstopped_speed_kmh = 0.8\n\n[simplify]\naccuracy_metres = 20\n",
    )
    assert cfg.stages.stopped_speed_kmh == 0.8
    assert cfg.stages.min_control_minutes == 10.0
    assert cfg.simplify.accuracy_metres == 20
    assert cfg.source["stages.stopped_speed_kmh"].startswith("user:")
    assert cfg.source["stages.min_control_minutes"].startswith("repo:")
    assert cfg.source["stages.control_resumption_metres"] == "default"


def test_env_overrides_files(tmp_path, monkeypatch):
    monkeypatch.setenv("GPXSTAGES_CONTROL_RESUMPTION_METRES", "250")
    monkeypatch.setenv("GPXSTAGES_SIMPLIFY_METRES", "5")
    cfg = _load(tmp_path, user_text="[stages]\ncontrol_resumption_metres = 50.0\n")

    assert cfg.stages.control_resumption_metres == 250.0
    assert cfg.simplify.accuracy_metres == 5
    assert cfg.source["stages.control_resumption_metres"] == "env:GPXSTAGES_CONTROL_RESUMPTION_METRES"


def test_invalid_toml_fails_loudly(tmp_path):
    with pytest.raises(ConfigError, match="Failed to parse"):
        _load(tmp_path, repo_text="[stages\nstopped_speed_kmh = ")


@pytest.mark.parametrize(
    "text",
    [
        "[stages]\nstopped_speed_kmh = -1\n",
        "[stages]\ncontrol_resumption_metres = 0\n",
        "[stages]\nmin_control_minutes = true\n",
        "[stages]\nmin_control_minutes = \"soon\"\n",
        "[simplify]\naccuracy_metres = 5000\n",
        "[simplify]\naccuracy_metres = 2.5\n",
    ],
)
def test_bad_values_are_rejected(tmp_path, text):
    with pytest.raises(ConfigError):
        _load(tmp_path, user_text=text)


def test_bad_env_value_names_its_source(tmp_path, monkeypatch):
    monkeypatch.setenv("GPXSTAGES_STOPPED_SPEED_KMH", "fast")
    with pytest.raises(ConfigError, match="env:GPXSTAGES_STOPPED_SPEED_KMH"):
        _load(tmp_path)


def test_cli_overrides():
    cfg = StageConfig().with_overrides(stopped_speed_kmh=None, min_control_minutes=2.0)
    assert cfg.stopped_speed_kmh == DEFAULT_STOPPED_SPEED_KMH
    assert cfg.min_control_minutes == 2.0
    with pytest.raises(ConfigError):
        StageConfig().with_overrides(control_resumption_metres=-5.0)


def test_validate_accuracy_metres():
    assert validate_accuracy_metres(None) is None
    assert validate_accuracy_metres(1) == 1
    assert validate_accuracy_metres(1000) == 1000
    with pytest.raises(ConfigError):
        validate_accuracy_metres(0)
