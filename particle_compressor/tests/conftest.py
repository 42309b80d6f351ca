from __future__ import annotations

import logging

import pytest


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """main() attaches handlers bound to the captured stderr of one test; drop them."""
    yield
    logger = logging.getLogger("particle_compressor")
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    logger.setLevel(logging.NOTSET)
