import pytest

from mtrlive import cli
from mtrlive.errors import AddressFormatError, ResolutionError


@pytest.fixture
def captured(monkeypatch):
    calls = []

    async def fake_monitor(target, settings):
        calls.append((target, settings))

    monkeypatch.setattr(cli, "monitor", fake_monitor)
    monkeypatch.setattr(cli, "setup_logging", lambda *a, **kw: None)
    monkeypatch.delenv(cli.DEV_TARGET_ENV, raising=False)
    return calls


def test_no_target_is_rejected(captured, capsys):
    assert cli.main([]) == 2
    assert "Invalid target" in capsys.readouterr().err
    assert captured == []


def test_two_targets_are_rejected(captured):
    with pytest.raises(SystemExit) as exc:
        cli.main(["example.com", "example.org"])
    assert exc.value.code == 2


def test_dev_target_from_environment(captured, monkeypatch):
    monkeypatch.setenv(cli.DEV_TARGET_ENV, "bing.com")
    assert cli.main([]) == 0
    assert captured[0][0] == "bing.com"


def test_flags_reach_settings(captured):
    assert cli.main(["  example.com ", "--max-hops", "60", "--timeout", "500", "--count", "3", "--strict", "--mode", "discover"]) == 0
    target, settings = captured[0]
    assert target == "example.com"
    assert settings.max_hops == 60
    assert settings.timeout == 0.5
    assert settings.count == 3
    assert settings.strict
    assert settings.mode == "discover"
    assert settings.window_size == 10
    assert settings.interval_ms == 1000


def test_invalid_settings_exit(captured):
    with pytest.raises(SystemExit) as exc:
        cli.main(["example.com", "--max-hops", "0"])
    assert exc.value.code == 2


def test_unknown_log_level_exits(captured, capsys):
    with pytest.raises(SystemExit) as exc:
        cli.main(["example.com", "--log-level", "bogus"])
    assert exc.value.code == 2
    assert "--log-level" in capsys.readouterr().err
    assert captured == []


def test_log_level_is_case_insensitive(captured):
    assert cli.main(["example.com", "--log-level", "debug"]) == 0
    assert captured[0][1].log_level == "DEBUG"


def test_unresolvable_target(monkeypatch, capsys):
    async def fail(target, settings):
        raise ResolutionError(target)

    monkeypatch.setattr(cli, "monitor", fail)
    monkeypatch.setattr(cli, "setup_logging", lambda *a, **kw: None)
    assert cli.main(["no-such-host.invalid"]) == 1
    assert "Host not found: no-such-host.invalid" in capsys.readouterr().err


def test_strict_failure_exits(monkeypatch, capsys):
    async def fail(target, settings):
        raise AddressFormatError("gateway")

    monkeypatch.setattr(cli, "monitor", fail)
    monkeypatch.setattr(cli, "setup_logging", lambda *a, **kw: None)
    assert cli.main(["example.com", "--strict"]) == 1
    assert "gateway" in capsys.readouterr().err


def test_ctrl_c(monkeypatch):
    async def interrupted(target, settings):
        raise KeyboardInterrupt

    monkeypatch.setattr(cli, "monitor", interrupted)
    monkeypatch.setattr(cli, "setup_logging", lambda *a, **kw: None)
    assert cli.main(["example.com"]) == 130
