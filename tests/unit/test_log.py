"""
Unit tests for logging setup.
"""
import logging
from logging.handlers import RotatingFileHandler

import pytest

from mint_figures.log import setup_logging

pytestmark = pytest.mark.unit


def test_setup_is_idempotent():
    logger = setup_logging()
    setup_logging(verbose=True)
    assert len(logger.handlers) == 1
    assert logger.level == logging.DEBUG


def test_rotating_file(tmp_path):
    log_file = tmp_path / "logs" / "mint-figures.log"
    logger = setup_logging(log_file=log_file)
    assert any(isinstance(h, RotatingFileHandler) for h in logger.handlers)

    logging.getLogger("mint_figures.pipelines").info("Processing week of June 07, 2024")
    for handler in logger.handlers:
        handler.flush()
    assert "INFO - Processing week of June 07, 2024" in log_file.read_text(encoding="utf-8")
