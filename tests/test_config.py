import os
from pathlib import Path
from unittest import mock

import pytest

from data_guard import config


def test_config_defaults():
    with mock.patch.dict(os.environ, {"HOME": "/home/tester"}, clear=True):
        cfg = config._read_config()
    assert cfg.DATA_DIR == Path("/home/tester/.local/share/data_guard")
    assert cfg.STATE_FILE == cfg.DATA_DIR / "alert_state.json"
    assert cfg.CHECK_INTERVAL_S == 6 * 60 * 60
    assert cfg.WEEK_START == 0
    assert cfg.SMTP_HOST == "smtp.gmail.com"
    assert cfg.SMTP_PORT == 465
    assert "wlan*" in cfg.WIFI_INTERFACES


def test_config_custom():
    env = {
        "DATA_GUARD_DATA_DIR": "/data",
        "DATA_GUARD_STATE_FILE": "/state/alert.json",
        "CHECK_INTERVAL_S": "60",
        "WEEK_START": "sunday",
        "SMTP_PORT": "not-a-port",
        "MOBILE_INTERFACES": "rmnet0, wwan*",
    }
    with mock.patch.dict(os.environ, env, clear=True):
        cfg = config._read_config()
    assert cfg.SETTINGS_FILE == Path("/data/settings.json")
    assert cfg.STATE_FILE == Path("/state/alert.json")
    assert cfg.CHECK_INTERVAL_S == 60.0
    assert cfg.WEEK_START == 6
    assert cfg.SMTP_PORT == 465
    assert cfg.MOBILE_INTERFACES == ["rmnet0", "wwan*"]


@pytest.mark.parametrize(
    "raw,expected",
    [("mon", 0), ("Sun", 6), ("7", 6), ("1", 0), ("sat", 5), ("", 0), ("xyz", 0), ("9", 0)],
)
def test_parse_week_start(raw, expected):
    assert config.parse_week_start(raw) == expected
