# clinicdesk/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import CORS_ORIGINS, LOG_LEVEL, SEED_DEMO_DATA
from .database import engine, AsyncSessionLocal
from .errors import register_exception_handlers
from .models import Base
from .notifications import Notifier
from .utils import create_initial_data

# --- IMPORT MODULES ---
from . import (
    appointment_api,
    dashboard_api,
    doctor_api,
    events_api,
    medicine_api,
    patient_api,
    receptionist_api,
)

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


async def init_db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        logger.info("DATABASE: Tables created successfully.")

    if SEED_DEMO_DATA:
        async with AsyncSessionLocal() as session:
            await create_initial_data(session)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    notifier = Notifier()
    await notifier.connect()
    app.state.notifier = notifier
    yield
    await notifier.close()
    await engine.dispose()


def create_app() -> FastAPI:
    app = FastAPI(title="ClinicDesk", lifespan=lifespan)

    # --- CORS SETTINGS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # --- REGISTER ROUTERS ---
    app.include_router(patient_api.router)
    app.include_router(appointment_api.router)
    app.include_router(receptionist_api.router)
    app.include_router(doctor_api.router)
    app.include_router(medicine_api.router)
    app.include_router(dashboard_api.router)
    app.include_router(events_api.router)

    @app.get("/")
    def read_root():
        return {"message": "ClinicDesk backend is running"}

    return app


app = create_app()


def run():
    import uvicorn
    uvicorn.run("clinicdesk.main:app", host="0.0.0.0", port=8000)
