"""Shared test fixtures."""

from collections.abc import Iterator

import pytest
import structlog


@pytest.fixture(autouse=True)
def _uncached_structlog() -> Iterator[None]:
    # CliRunner swaps sys.stderr per invocation and closes it afterwards; a logger
    # cached on first use would keep writing to the closed stream.
    previous = structlog.get_config()["cache_logger_on_first_use"]
    structlog.configure(cache_logger_on_first_use=False)
    yield
    structlog.configure(cache_logger_on_first_use=previous)
