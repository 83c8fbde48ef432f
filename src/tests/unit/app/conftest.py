"""Fixtures for HTTP layer tests."""

import httpx
import pytest

from efsbroker.app.context import BrokerContext, build_context
from efsbroker.app.main import create_app


@pytest.fixture
async def context(settings, store, provider, clock) -> BrokerContext:
    ctx = await build_context(settings, store=store, provider=provider, clock=clock)
    yield ctx
    await ctx.controller.shutdown()


@pytest.fixture
async def client(context: BrokerContext) -> httpx.AsyncClient:
    app = create_app(context)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://broker") as client:
        yield client


@pytest.fixture
def available_instance(context: BrokerContext, remote, instance_factory):
    """fs-1 provisioned, with one available mount target."""
    context.state.instances["fs-1"] = instance_factory()
    remote.fs_state = "available"
    remote.add_mount_target("available")
    return context.state.instances["fs-1"]
