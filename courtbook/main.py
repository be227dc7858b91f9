from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from courtbook.config import get_settings
from courtbook.db import init_db
from courtbook.errors import CourtbookError
from courtbook.logging import configure_logging, get_logger
from courtbook.routers import admin_bookings, bookings, club_hours, slots, timeoff

configure_logging()
logger = get_logger(__name__)

app = FastAPI(title="Courtbook API", version="0.1.0")

app.include_router(bookings.router, prefix="/bookings", tags=["bookings"])
app.include_router(admin_bookings.router, prefix="/admin/bookings", tags=["admin"])
app.include_router(slots.router, prefix="/courts", tags=["courts"])
app.include_router(timeoff.router, prefix="/coach/timeoff", tags=["coach"])
app.include_router(club_hours.router, prefix="/clubs", tags=["clubs"])


@app.exception_handler(CourtbookError)
async def courtbook_error_handler(request: Request, exc: CourtbookError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    else:
        logger.debug("%s %s rejected (%d): %s", request.method, request.url.path, exc.status_code, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.on_event("startup")
def on_startup():
    if get_settings().SKIP_DB_INIT:
        return
    init_db()


@app.get("/")
def root():
    return {"ok": True, "service": "courtbook"}
