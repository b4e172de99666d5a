from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from app.api.v1.router import router as v1_router
from app.core.config import settings
from app.core.telemetry import setup_telemetry

app = FastAPI(title="Listings API", version="0.1.0")

setup_telemetry(app)
app.include_router(v1_router)
app.mount("/assets", StaticFiles(directory=settings.assets_dir, check_dir=False), name="assets")
