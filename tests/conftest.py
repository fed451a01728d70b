from __future__ import annotations

import logging

import pytest

from vault_updater.observability import bind_trace_id, get_logger


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """Detach handlers installed by ``configure_logging`` so tests stay independent."""

    yield
    bind_trace_id(None)
    logger = get_logger()
    for handler in list(logger.handlers):
        if getattr(handler, "_vault_updater_handler", False):
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(logging.NOTSET)
