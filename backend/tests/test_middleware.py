"""
StripBooth Backend — Middleware Tests
======================================

What we test:
    ✅ requests over the per-IP window get a 429 envelope with Retry-After
    ✅ health checks and media downloads are never limited
    ✅ a request id is generated when the client sends none
"""

from unittest.mock import patch

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from stripbooth.config import settings
from stripbooth.middleware.rate_limit import RateLimitMiddleware
from stripbooth.middleware.request_id import RequestIDMiddleware


def _build_app() -> FastAPI:
    app = FastAPI()

    @app.get("/api/ping")
    async def ping():
        return {"ok": True}

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    @app.get("/uploads/{key:path}")
    async def media(key: str):
        return {"key": key}

    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)
    return app


class TestRateLimit:

    def setup_method(self):
        self.app = _build_app()

    @pytest.mark.asyncio
    async def test_limit_exceeded(self):
        transport = ASGITransport(app=self.app)
        with patch.object(settings, "rate_limit_requests", 2):
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                assert (await client.get("/api/ping")).status_code == 200
                assert (await client.get("/api/ping")).status_code == 200
                response = await client.get("/api/ping")

        assert response.status_code == 429
        assert response.json()["error"] == "rate_limit_exceeded"
        assert int(response.headers["Retry-After"]) >= 1

    @pytest.mark.asyncio
    async def test_excluded_paths(self):
        transport = ASGITransport(app=self.app)
        with patch.object(settings, "rate_limit_requests", 1):
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                for _ in range(3):
                    assert (await client.get("/health")).status_code == 200
                    assert (await client.get("/uploads/project-images/a.png")).status_code == 200


class TestRequestId:

    @pytest.mark.asyncio
    async def test_generated_when_missing(self):
        transport = ASGITransport(app=_build_app())
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/api/ping")

        assert len(response.headers["X-Request-ID"]) == 8
