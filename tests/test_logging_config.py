import logging

import pytest

from ipfix_agent.logging_config import setup_logging


@pytest.fixture
def package_logger():
    logger = logging.getLogger("ipfix_agent")
    level = logger.level
    yield logger
    logger.setLevel(level)


def test_level_name_is_case_insensitive(package_logger):
    setup_logging("debug")
    assert package_logger.level == logging.DEBUG


def test_unknown_level_falls_back_to_info(package_logger):
    setup_logging("chatty")
    assert package_logger.level == logging.INFO
