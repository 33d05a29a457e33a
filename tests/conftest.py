import pytest
from loguru import logger

from ab2.settings import get_settings


@pytest.fixture(autouse=True)
def _reset_process_state():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
    # main() points loguru at the captured stderr of the current test
    logger.remove()
