import io
import logging
from datetime import datetime

import pytest

from bookkit.progress import (
    ConsoleLogger,
    Message,
    MessageKind,
    Spinner,
    TaskHandle,
    is_logging,
    log_format,
    spinner,
    styled,
)


@pytest.fixture
def plain(monkeypatch):
    monkeypatch.setenv("NO_COLOR", "1")
    monkeypatch.delenv("CLICOLOR_FORCE", raising=False)


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    level = root.level
    yield root
    for handler in list(root.handlers):
        if isinstance(handler, ConsoleLogger):
            root.removeHandler(handler)
    root.setLevel(level)


def test_message_display():
    assert str(Message(MessageKind.CREATE, "p", total=3)) == "p"
    assert str(Message(MessageKind.UPDATE, "k", "u")) == "k u"
    assert str(Message(MessageKind.TASK, "k", "t")) == "k t"
    assert str(Message(MessageKind.DONE, "k", "t")) == "k t .. done"
    assert str(Message(MessageKind.FINISH, "k", "u")) == "k .. u"


def test_spinner_handle_logs_without_spinner(caplog):
    caplog.set_level(logging.INFO, logger="bookkit")
    handle = spinner()
    assert handle.create("indexing", 2) is handle
    assert handle.update("indexing", "step") is handle
    handle.finish("indexing", "ok")
    messages = [r.getMessage() for r in caplog.records]
    assert messages == ["indexing", "indexing step", "indexing .. ok"]


def test_task_handle_reports_done_once(caplog):
    caplog.set_level(logging.INFO, logger="bookkit")
    task = spinner().task("resolve", "page.md")
    assert isinstance(task, TaskHandle)
    task.close()
    task.close()
    messages = [r.getMessage() for r in caplog.records]
    assert messages == ["resolve page.md", "resolve page.md .. done"]


def test_task_handle_context_manager(caplog):
    caplog.set_level(logging.INFO, logger="bookkit")
    with spinner().task("resolve", "a"):
        pass
    assert caplog.records[-1].getMessage() == "resolve a .. done"


def test_is_logging_without_spinner():
    assert is_logging() is True


def test_spinner_renders_progress(plain):
    out = io.StringIO()
    sp = Spinner("demo", out)
    sp.send(Message(MessageKind.CREATE, "build", total=2))
    sp.send(Message(MessageKind.TASK, "build", "page-a"))
    sp.send(Message(MessageKind.DONE, "build", "page-a"))
    sp.send(Message(MessageKind.FINISH, "build", "all good"))
    sp.close()
    text = out.getvalue()
    assert "[demo] build" in text
    assert "(0/2)" in text
    assert "(1/2)" in text
    assert "all good" in text
    assert text.endswith("\n")


def test_spinner_ignores_other_keys(plain):
    out = io.StringIO()
    sp = Spinner("demo", out)
    sp.send(Message(MessageKind.CREATE, "build"))
    sp.send(Message(MessageKind.UPDATE, "other", "hidden"))
    sp.send(Message(MessageKind.UPDATE, "build", "shown"))
    sp.send(Message(MessageKind.FINISH, "build", "end"))
    sp.send(Message(MessageKind.UPDATE, "build", "late"))
    sp.close()
    sp.close()
    text = out.getvalue()
    assert "hidden" not in text
    assert "late" not in text
    assert "shown" in text


def test_spinner_write_line_prints_above_bar(plain):
    out = io.StringIO()
    sp = Spinner("demo", out)
    sp.send(Message(MessageKind.CREATE, "build"))
    sp.close()
    sp._write_line("a log line")
    assert "a log line\n" in out.getvalue()


def test_styled_with_forced_colors(monkeypatch):
    monkeypatch.setenv("CLICOLOR_FORCE", "1")
    assert styled("x", "yellow") == "\x1b[33mx\x1b[0m"
    combined = styled("x", "dim", "red")
    assert combined.startswith("\x1b[2m")
    assert combined.endswith("x\x1b[0m")


def test_styled_without_colors(plain):
    assert styled("x", "red") == "x"
    assert styled(42) == "42"


def test_styled_unknown_style():
    with pytest.raises(ValueError):
        styled("x", "sparkly")


def test_log_format(plain):
    record = logging.LogRecord("bookkit.test", logging.WARNING, __file__, 1, "hi %s", ("there",), None)
    line = log_format(record)
    stamp, _, rest = line.partition(" [")
    assert rest == "WARN] (bookkit.test): hi there"
    parsed = datetime.strptime(stamp, "%Y-%m-%d %H:%M:%S")
    assert parsed.strftime("%Y-%m-%d %H:%M:%S") == stamp


def test_log_format_trace_level(plain):
    record = logging.LogRecord("x", 5, __file__, 1, "m", (), None)
    assert "[TRACE] (x): m" in log_format(record)


def test_try_install_twice_fails(root_logger, monkeypatch):
    monkeypatch.setenv("BOOKKIT_LOG", "debug")
    handler = ConsoleLogger.try_install("bookkit")
    assert handler in root_logger.handlers
    with pytest.raises(RuntimeError):
        ConsoleLogger.try_install("bookkit")
    with pytest.raises(RuntimeError, match="logger should not have been set"):
        ConsoleLogger.install("bookkit")


def test_installed_logger_filters_by_env(root_logger, monkeypatch, capsys, plain):
    monkeypatch.setenv("BOOKKIT_LOG", "warn,bookkit.verbose=debug")
    ConsoleLogger.try_install("bookkit")
    logging.getLogger("bookkit.quiet").info("quiet info")
    logging.getLogger("bookkit.quiet").warning("loud warning")
    logging.getLogger("bookkit.verbose").debug("verbose debug")
    err = capsys.readouterr().err
    assert "quiet info" not in err
    assert "[WARN] (bookkit.quiet): loud warning" in err
    assert "[DEBUG] (bookkit.verbose): verbose debug" in err