import logging
import os

import pytest

from interview_engine.logging_config import setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_setup_logging_creates_log_file(tmp_path, restore_root_logger):
    """Test file and console handlers are attached and the log file is written"""
    logger = setup_logging(level="debug", log_dir=str(tmp_path))

    assert logger is restore_root_logger
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 2

    logging.getLogger("llm_gateway").info("hello log")
    for handler in logger.handlers:
        handler.flush()

    files = os.listdir(tmp_path)
    assert len(files) == 1 and files[0].startswith("interview_")
    assert "llm_gateway - INFO - hello log" in (tmp_path / files[0]).read_text(encoding="utf-8")


def test_setup_logging_replaces_handlers(tmp_path, restore_root_logger):
    setup_logging(log_dir=str(tmp_path))
    setup_logging(log_dir=str(tmp_path))
    assert len(logging.getLogger().handlers) == 2
    assert logging.getLogger("groq").level == logging.WARNING


if __name__ == "__main__":
    pytest.main([__file__])
