import logging

import pytest

from bookkit.diagnostics import (
    Diagnostics,
    Issue,
    LabeledSpan,
    Level,
    Problem,
    ReportBuilder,
)

BROKEN = Issue("broken links", Level.WARN)
FAILED = Issue("failed links", Level.ERROR)
RESOLVED = Issue("resolved links", Level.INFO)

TEXT = "# Title\n\nsee [a](b) and [c](d)\n"


def problem(issue, needle, label=None):
    return Problem(issue, LabeledSpan(TEXT.index(needle), len(needle), label))


def diag(*problems, name="page.md"):
    return Diagnostics(TEXT, name, list(problems), RESOLVED)


def test_status_is_most_severe():
    d = diag(problem(RESOLVED, "[c]"), problem(FAILED, "[a]"), problem(BROKEN, "[c]"))
    assert d.status() == FAILED
    assert str(d) == str(FAILED)


def test_status_defaults_to_kind():
    assert diag().status() == RESOLVED


def test_filtered_keeps_severe_problems():
    d = diag(problem(RESOLVED, "[c]"), problem(BROKEN, "[a]"))
    kept = d.filtered(Level.WARN)
    assert [p.issue() for p in kept.issues] == [BROKEN]
    assert d.filtered(Level.ERROR) is None


def test_to_logs_format():
    d = diag(problem(BROKEN, "[a]", "bad link"))
    assert d.to_logs() == "warning: broken links\n  page.md:3:5: bad link"


def test_to_logs_without_label_and_help():
    d = diag(problem(FAILED, "[a]"))
    assert d.to_logs().splitlines()[0] == "error: failed links"
    assert d.to_logs().splitlines()[1].endswith("page.md:3:5")
    assert "help: in page.md" in diag().to_logs()


def test_to_report_uncolored():
    report = diag(problem(BROKEN, "[a]", "bad link")).to_report(colored=False)
    assert "\x1b[" not in report
    assert "warning: broken links" in report
    assert "[page.md:3:5]" in report
    assert "see [a](b) and [c](d)" in report
    assert "bad link" in report


def test_to_report_colored_uses_level_colors():
    report = diag(problem(BROKEN, "[a]", "bad"), problem(FAILED, "[c]", "worse")).to_report(colored=True)
    assert "\x1b[33m" in report
    assert "\x1b[31m" in report


def test_builder_filters_and_names():
    items = [
        diag(problem(RESOLVED, "[a]"), name="quiet.md"),
        diag(problem(BROKEN, "[a]", "x"), problem(RESOLVED, "[c]"), name="loud.md"),
    ]
    reporter = ReportBuilder(items, str).level(Level.WARN).names(str.upper).colored(False).build()
    assert [d.name for d in reporter.items] == ["LOUD.MD"]
    assert [p.issue() for p in reporter.items[0].issues] == [BROKEN]
    assert reporter.to_status() == BROKEN
    assert reporter.colored is False


def test_reporter_status_over_files():
    items = [diag(problem(BROKEN, "[a]")), diag(problem(FAILED, "[c]"))]
    reporter = ReportBuilder(items, str).build()
    assert reporter.to_status() == FAILED
    assert reporter.to_logs() == "".join(d.to_logs() + "\n" for d in reporter.items)


def test_to_stderr_report(capsys):
    reporter = ReportBuilder([diag(problem(BROKEN, "[a]", "bad"))], str).colored(False).logging(False).build()
    assert reporter.to_stderr() is reporter
    assert capsys.readouterr().err == "\n\n" + reporter.to_report()


def test_to_stderr_logging(caplog):
    reporter = ReportBuilder([diag(problem(FAILED, "[a]", "bad"))], str).build()
    with caplog.at_level(logging.DEBUG, logger="bookkit"):
        reporter.to_stderr()
    assert [r.levelno for r in caplog.records] == [logging.ERROR]
    assert "failed links" in caplog.records[0].getMessage()


def test_to_stderr_nothing_when_empty(capsys):
    reporter = ReportBuilder([diag(problem(RESOLVED, "[a]"))], str).level(Level.WARN).logging(False).build()
    reporter.to_stderr()
    assert capsys.readouterr().err == ""


@pytest.mark.parametrize("level", list(Level))
def test_level_ordering_matches_logging(level):
    if level > Level.OFF:
        assert Level(level - 1).logging_level > level.logging_level
    else:
        assert level.logging_level > logging.CRITICAL