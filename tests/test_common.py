import argparse
import logging

from distillery import common


def test_register_command_adds_one():
    before = len(common.get_commands())
    cmd = common.Command(name="test-register-one")
    common.register_command(cmd)
    commands = common.get_commands()
    assert len(commands) == before + 1
    assert commands[-1] is cmd


def test_get_command_by_name():
    cmd = common.Command(name="test-lookup", usage="lookup")
    common.register_command(cmd)
    assert common.get_command("test-lookup") is cmd
    assert common.get_command("no-such-command") is None


def test_get_command_ignores_aliases():
    common.register_command(common.Command(name="proof-test", aliases=("export-test",)))
    assert common.get_command("export-test") is None


def test_logging_argument_defaults(monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    parser = common.add_logging_arguments(argparse.ArgumentParser())
    ns = parser.parse_args([])
    assert ns.log_level == "info"
    assert ns.log_caller is False
    assert ns.log_disable_color is False
    assert ns.log_full_timestamp is False


def test_logging_argument_env_default(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "debug")
    parser = common.add_logging_arguments(argparse.ArgumentParser())
    assert parser.parse_args([]).log_level == "debug"


def test_logging_arguments_parsed():
    parser = common.add_logging_arguments(argparse.ArgumentParser())
    ns = parser.parse_args(["-l", "trace", "--log-caller", "--log-full-timestamp"])
    assert ns.log_level == "trace"
    assert ns.log_caller is True
    assert ns.log_full_timestamp is True


def test_configure_logging_levels():
    logger = common.configure_logging("trace", False, True, False)
    assert logger.level == common.TRACE
    logger = common.configure_logging("warn", False, True, False)
    assert logger.level == logging.WARNING
    logger = common.configure_logging("error", False, True, False)
    assert logger.level == logging.ERROR
    logger = common.configure_logging("bogus", False, True, False)
    assert logger.level == logging.ERROR


def test_configure_logging_single_handler_and_caller():
    common.configure_logging("info", False, True, False)
    logger = common.configure_logging("info", True, True, False)
    marked = [h for h in logger.handlers if isinstance(h, logging.StreamHandler)]
    assert len(marked) == 1
    record = logging.LogRecord("distillery", logging.INFO, "/a/b/file.py", 42, "hello", None, None)
    out = marked[0].format(record)
    assert out.startswith("INFO[")
    assert "hello" in out
    assert out.endswith("file.py:42")


def test_app_version_string():
    info = common.AppVersionInfo(
        name="tool", version="2.0.0", branch="main", summary="v2.0.0", commit="abc123"
    )
    assert str(info) == "{tool 2.0.0 main v2.0.0 abc123}"
    assert str(common.APP_VERSION) == "{distillery 1.0.0 dev v1.0.0 dirty}"
    assert common.APP_VERSION.summary == common.SUMMARY == "v1.0.0"