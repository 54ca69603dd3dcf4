import asyncio

import aiohttp
import pytest

from subcount_bridge.app import BridgeApp


@pytest.mark.asyncio
async def test_app_serves_until_shutdown_requested(fast_config, unused_tcp_port):
    fast_config.server.host = "127.0.0.1"
    fast_config.server.port = unused_tcp_port
    app = BridgeApp(fast_config)

    task = asyncio.create_task(app.run())
    url = f"http://127.0.0.1:{unused_tcp_port}/healthz"
    payload = None
    async with aiohttp.ClientSession() as session:
        for _ in range(100):
            try:
                async with session.get(url) as response:
                    payload = await response.json()
                    break
            except aiohttp.ClientConnectionError:
                await asyncio.sleep(0.01)

    assert payload is not None
    assert payload["connections"] == 0
    assert app.server is not None

    app.request_shutdown()
    await asyncio.wait_for(task, timeout=2.0)

    assert app.server is None
