"""Integration test fixtures: a live management server for real worker processes."""

import pytest_asyncio
from aiohttp.test_utils import TestServer

from tests.infrastructure.mocks import create_acs_app

# Serial that the fake server rejects with HTTP 500.
REJECTED_SERIAL = "000000"


@pytest_asyncio.fixture
async def acs():
    """Start the fake ACS and yield ``(app, url)``."""
    app = create_acs_app(fail_serials={REJECTED_SERIAL})
    server = TestServer(app)
    await server.start_server()
    try:
        yield app, str(server.make_url("/"))
    finally:
        await server.close()
