import json

import pytest

from monitor_config import (
    Config,
    apply_overrides,
    config_snapshot,
    load_config,
    load_overrides,
    parse_obs_address,
    save_overrides,
    validate_template,
)
from monitor_errors import ConfigError


# -----------------------------
# Templates
# -----------------------------

@pytest.mark.parametrize("template", ["%d", "Likes: %d", "%i likes", "%u", "%05d", "%-8d|", "%+d", "100%% and %d"])
def test_valid_templates(template):
    assert validate_template(template) == template


@pytest.mark.parametrize(
    "template",
    [
        "",
        "Likes",
        "%d of %d",
        "%s likes",
        "Likes: %",
        "%.2f",
        "%x",
        "only %%",
    ],
)
def test_invalid_templates(template):
    with pytest.raises(ConfigError):
        validate_template(template)


# -----------------------------
# OBS address
# -----------------------------

@pytest.mark.parametrize(
    "addr,expected",
    [
        ("", ("localhost", 4455)),
        ("localhost:4455", ("localhost", 4455)),
        ("ws://10.0.0.5:4460/", ("10.0.0.5", 4460)),
        ("obs-pc", ("obs-pc", 4455)),
        ("[::1]:4456", ("::1", 4456)),
        ("::1", ("::1", 4455)),
    ],
)
def test_parse_obs_address(addr, expected):
    assert parse_obs_address(addr) == expected


@pytest.mark.parametrize("addr", ["host:abc", "host:0", "host:70000"])
def test_parse_obs_address_rejects_bad_ports(addr):
    with pytest.raises(ConfigError):
        parse_obs_address(addr)


# -----------------------------
# Overrides
# -----------------------------

def test_missing_overrides_file_gives_defaults(tmp_path):
    cfg = load_config(str(tmp_path / "nope.json"))
    assert cfg == Config()
    assert cfg.POLL_INTERVAL_SECONDS == 15.0
    assert cfg.ERROR_RETRY_SECONDS == 30.0
    assert cfg.OBS_INPUT_NAME == "LikeAlertText"


def test_versioned_and_flat_overrides_are_both_read(tmp_path):
    versioned = tmp_path / "v.json"
    versioned.write_text(json.dumps({"version": 1, "overrides": {"OBS_PORT": 4460}}), encoding="utf-8")
    flat = tmp_path / "f.json"
    flat.write_text(json.dumps({"OBS_PORT": 4461}), encoding="utf-8")

    assert load_overrides(str(versioned)) == {"OBS_PORT": 4460}
    assert load_overrides(str(flat)) == {"OBS_PORT": 4461}


@pytest.mark.parametrize("content", ["{not json", "[1, 2]"])
def test_malformed_overrides_file_raises(tmp_path, content):
    p = tmp_path / "bad.json"
    p.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_overrides(str(p))


def test_apply_overrides_coerces_types_and_skips_unknown_keys():
    cfg = Config()
    applied = apply_overrides(
        cfg,
        {
            "OBS_PORT": "4460",
            "POLL_INTERVAL_SECONDS": "20",
            "WEB_HUB_ENABLED": "yes",
            "AUTO_START": 0,
            "TEXT_TEMPLATE": None,
            "NOT_A_FIELD": 1,
        },
    )

    assert sorted(applied) == ["AUTO_START", "OBS_PORT", "POLL_INTERVAL_SECONDS", "TEXT_TEMPLATE", "WEB_HUB_ENABLED"]
    assert cfg.OBS_PORT == 4460
    assert cfg.POLL_INTERVAL_SECONDS == 20.0
    assert cfg.WEB_HUB_ENABLED is True
    assert cfg.AUTO_START is False
    assert cfg.TEXT_TEMPLATE == ""


def test_apply_overrides_rejects_bad_numbers():
    with pytest.raises(ConfigError):
        apply_overrides(Config(), {"OBS_PORT": "forty"})


def test_save_then_load(tmp_path):
    p = str(tmp_path / "config_overrides.json")
    save_overrides({"YOUTUBE_VIDEO_ID": "abc123", "WEB_HUB_PORT": 9000}, p)

    with open(p, encoding="utf-8") as f:
        raw = json.load(f)
    assert raw["version"] == 1
    assert "saved_utc" in raw

    cfg = load_config(p)
    assert cfg.YOUTUBE_VIDEO_ID == "abc123"
    assert cfg.WEB_HUB_PORT == 9000


def test_snapshot_hides_secrets_by_default():
    cfg = Config(YOUTUBE_API_KEY="secret", OBS_PASSWORD="pw")
    snap = config_snapshot(cfg)
    assert "YOUTUBE_API_KEY" not in snap
    assert "OBS_PASSWORD" not in snap
    assert config_snapshot(cfg, include_secrets=True)["YOUTUBE_API_KEY"] == "secret"
