from __future__ import annotations

import logging

import pytest

from task_cache.logging_setup import _ConsoleNoiseFilter, setup_logging


@pytest.fixture()
def restore_root():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    yield root
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
    for h in saved_handlers:
        root.addHandler(h)
    root.setLevel(saved_level)
    logging.captureWarnings(False)


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


class TestConsoleFilter:
    @pytest.mark.parametrize(
        "name,level,allowed",
        [
            ("task_cache", logging.DEBUG, True),
            ("task_cache.batcher", logging.DEBUG, True),
            ("uvicorn.access", logging.INFO, True),
            ("uvicorn.error", logging.DEBUG, False),
            ("httpx", logging.INFO, False),
            ("httpx", logging.WARNING, True),
            ("task_cache_other", logging.INFO, False),
        ],
    )
    def test_levels_by_logger(self, name, level, allowed):
        assert _ConsoleNoiseFilter().filter(_record(name, level)) is allowed


class TestSetup:
    def test_console_only(self, restore_root):
        setup_logging(console_level="WARNING")
        handlers = restore_root.handlers
        assert len(handlers) == 1
        assert handlers[0].level == logging.WARNING
        assert restore_root.level == logging.DEBUG

    def test_file_handler_receives_debug(self, restore_root, tmp_path):
        log_dir = tmp_path / "logs"
        setup_logging(console_level=logging.ERROR, log_dir=log_dir)
        assert len(restore_root.handlers) == 2

        logging.getLogger("task_cache.test").debug("flushed %d event(s)", 3)
        for h in restore_root.handlers:
            h.flush()

        text = (log_dir / "task_cache.log").read_text(encoding="utf-8")
        assert "DEBUG task_cache.test: flushed 3 event(s)" in text

    def test_repeated_setup_replaces_handlers(self, restore_root):
        setup_logging()
        setup_logging()
        assert len(restore_root.handlers) == 1
