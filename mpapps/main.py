import logging

import mpapps.models  # noqa: F401
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mpapps.core.config import settings
from mpapps.ministry_platform.errors import MinistryPlatformError
from mpapps.ministry_platform.provider import get_provider
from mpapps.routers import admin_simulation as admin_simulation_router
from mpapps.routers import auth as auth_router
from mpapps.routers import budgets as budgets_router
from mpapps.routers import cancellations as cancellations_router
from mpapps.routers import counter as counter_router
from mpapps.routers import events as events_router
from mpapps.routers import files as files_router
from mpapps.routers import permissions as permissions_router
from mpapps.routers import platform as platform_router
from mpapps.routers import prayers as prayers_router
from mpapps.routers import projects as projects_router
from mpapps.routers import rsvp as rsvp_router
from mpapps.routers import users as users_router
from mpapps.routers import webhooks as webhooks_router
from mpapps.routers import widgets as widgets_router

app = FastAPI(title="MP Apps API", version="0.1.0")

logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router.router)
app.include_router(admin_simulation_router.router)
app.include_router(permissions_router.router)
app.include_router(users_router.router)
app.include_router(counter_router.router)
app.include_router(prayers_router.router)
app.include_router(cancellations_router.router)
app.include_router(cancellations_router.public_router)
app.include_router(projects_router.router)
app.include_router(budgets_router.router)
app.include_router(rsvp_router.router)
app.include_router(widgets_router.router)
app.include_router(webhooks_router.router)
app.include_router(events_router.router)
app.include_router(files_router.router)
app.include_router(platform_router.router)


@app.exception_handler(MinistryPlatformError)
async def ministry_platform_error_handler(request: Request, exc: MinistryPlatformError) -> JSONResponse:
    logger.error(
        "ministry_platform_error",
        extra={"path": request.url.path, "endpoint": exc.endpoint, "upstream_status": exc.status_code},
    )
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={
            "detail": str(exc),
            "code": "ministry_platform_error",
            "upstream_status": exc.status_code,
        },
    )


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.on_event("shutdown")
def close_ministry_platform_client() -> None:
    if get_provider.cache_info().currsize:
        get_provider().client.close()
