import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from docflow.api.admin import router as admin_router
from docflow.api.deadlines import router as deadlines_router
from docflow.api.documents import router as documents_router
from docflow.api.notifications import router as notifications_router
from docflow.api.users import router as users_router
from docflow.config import settings
from docflow.db import SessionLocal
from docflow.errors import register_error_handlers
from docflow.logging import configure_logging
from docflow.observability import ObservabilityMiddleware
from docflow.services.seed import seed_sample_users
from docflow.services.storage import RemoteStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if RemoteStore.is_configured():
        logger.info("Remote storage enabled, bucket %s", settings.s3_bucket_name)
    else:
        logger.warning("Remote storage not configured, using local uploads only")
    if settings.seed_sample_data:
        db = SessionLocal()
        try:
            seed_sample_users(db)
        finally:
            db.close()
    yield


configure_logging()

app = FastAPI(title=f"{settings.brand_name} API", lifespan=lifespan)
app.add_middleware(ObservabilityMiddleware)
register_error_handlers(app)

app.include_router(users_router)
app.include_router(documents_router)
app.include_router(deadlines_router)
app.include_router(notifications_router)
app.include_router(admin_router)

Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
app.mount(
    settings.upload_url_prefix,
    StaticFiles(directory=settings.upload_dir),
    name="uploads",
)


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
