"""Example FastAPI application reporting tenant telemetry.

Run with:
    uvicorn examples.fastapi_example:app --reload

Storage is chosen from the environment (EVENT_STORAGE=memory|redis|sqlite,
REDIS_URL, SENTINEL_RETENTION_MINUTES, ...).

Endpoints:
    /orders                                   - Sample tenant API (tracked)
    /flaky                                    - Fails now and then (tracked)
    /api/v1/events                            - Ingest an event (POST)
    /api/v1/analytics/top-tenants/errors      - Tenants ranked by error rate
    /api/v1/analytics/top-tenants/latency     - Tenants ranked by p95 latency
    /api/v1/debug/events?format=ndjson        - Recent raw events
    /api/v1/debug/stats                       - Buffer totals

Try:
    curl -H "X-Tenant-ID: acme" localhost:8000/flaky
    curl localhost:8000/api/v1/analytics/top-tenants/errors?window=5
"""

import asyncio
import random

from fastapi import FastAPI, HTTPException

from tenant_sentinel.adapters.frameworks.fastapi import create_app

# Sentinel's own routes plus the middleware recording every tracked request.
app: FastAPI = create_app(instrument=True)


@app.get("/orders")
async def list_orders() -> dict[str, list[dict[str, str]]]:
    """Tenant-facing endpoint with a little simulated latency."""
    await asyncio.sleep(random.uniform(0.01, 0.2))
    return {"orders": [{"id": "1", "status": "shipped"}]}


@app.get("/flaky")
async def flaky() -> dict[str, str]:
    """Fails with a 503 roughly a third of the time."""
    if random.random() < 0.33:
        raise HTTPException(status_code=503, detail="Upstream unavailable")
    return {"status": "ok"}
