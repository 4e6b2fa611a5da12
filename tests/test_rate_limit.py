"""Rate limit wiring: slowapi quotas produce a 429 error envelope."""

import pytest
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient
from slowapi import Limiter
from slowapi.util import get_remote_address

from authcore.api.responses import register_exception_handlers, success_response
from authcore.core.rate_limit import FORGOT_PASSWORD_LIMIT


def _app() -> FastAPI:
    limiter = Limiter(key_func=get_remote_address, enabled=True)
    app = FastAPI()
    app.state.limiter = limiter
    register_exception_handlers(app)

    @app.post("/limited")
    @limiter.limit(FORGOT_PASSWORD_LIMIT)
    async def limited(request: Request):
        return success_response(request, message="ok")

    return app


@pytest.mark.asyncio
async def test_quota_exceeded_returns_429_envelope():
    async with AsyncClient(transport=ASGITransport(app=_app()), base_url="http://test") as client:
        statuses = [(await client.post("/limited")).status_code for _ in range(3)]
        assert statuses == [200, 200, 200]

        resp = await client.post("/limited")
        assert resp.status_code == 429
        body = resp.json()
        assert body["status"] == "error"
        assert body["statusCode"] == 429
        assert body["path"] == "/limited"
