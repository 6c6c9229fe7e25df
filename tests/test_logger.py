import io
import re

from wgcore.logger import LogLevel, Logger, discard_logf, new_logger

_STAMP = r"\d{4}/\d{2}/\d{2} \d{2}:\d{2}:\d{2}"


def test_verbose_level_logs_both():
    out = io.StringIO()
    logger = new_logger(LogLevel.VERBOSE, "dev0: ", out)
    logger.verbosef("hello %d", 7)
    logger.errorf("bad %s", "thing")
    lines = out.getvalue().splitlines(keepends=True)
    assert len(lines) == 2
    assert re.fullmatch(rf"DEBUG: dev0: {_STAMP} hello 7\n", lines[0])
    assert re.fullmatch(rf"ERROR: dev0: {_STAMP} bad thing\n", lines[1])


def test_error_level_drops_verbose():
    out = io.StringIO()
    logger = new_logger(LogLevel.ERROR, "x ", out)
    logger.verbosef("quiet")
    logger.errorf("loud")
    text = out.getvalue()
    assert "quiet" not in text
    assert text.startswith("ERROR: x ")
    assert text.count("\n") == 1


def test_silent_level_writes_nothing():
    out = io.StringIO()
    logger = new_logger(LogLevel.SILENT, "", out)
    logger.verbosef("a")
    logger.errorf("b")
    assert out.getvalue() == ""
    assert logger.errorf is discard_logf


def test_no_double_newline():
    out = io.StringIO()
    new_logger(LogLevel.VERBOSE, "", out).verbosef("line\n")
    assert out.getvalue().endswith("line\n")
    assert not out.getvalue().endswith("\n\n")


def test_format_without_args_is_verbatim():
    out = io.StringIO()
    new_logger(LogLevel.ERROR, "", out).errorf("100% done")
    assert out.getvalue().rstrip("\n").endswith(" 100% done")


def test_default_logger_discards():
    logger = Logger()
    assert logger.verbosef is discard_logf
    assert logger.errorf is discard_logf
    assert discard_logf("anything %s", "x") is None