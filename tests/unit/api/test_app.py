import httpx

from buckled.app import app


class TestHealth:
    async def test_health(self) -> None:
        transport = httpx.ASGITransport(app=app)  # type: ignore[arg-type]
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            resp = await c.get("/health")

        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}
