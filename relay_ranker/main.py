from fastapi import FastAPI

from .api import health, relays

app = FastAPI(title="Relay Latency Ranker")

app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(relays.router, prefix="/relays", tags=["relays"])
