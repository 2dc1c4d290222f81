import logging

from rio.logs import setup_logging


def test_console_only_by_default():
    logger = setup_logging(level="WARNING")

    assert logger.name == "rio"
    assert logger.level == logging.WARNING
    assert len(logger.handlers) == 1


def test_log_files_and_no_duplicate_handlers(tmp_path):
    log_dir = tmp_path / "logs"

    setup_logging(log_dir, "DEBUG")
    logger = setup_logging(log_dir, "DEBUG")

    assert len(logger.handlers) == 3

    logging.getLogger("rio.optimizer").error("encoder exploded")
    for handler in logger.handlers:
        handler.flush()

    assert "encoder exploded" in (log_dir / "rio.log").read_text(encoding="utf-8")
    assert "encoder exploded" in (log_dir / "errors.log").read_text(encoding="utf-8")


def test_unknown_level_falls_back_to_info():
    assert setup_logging(level="chatty").level == logging.INFO
