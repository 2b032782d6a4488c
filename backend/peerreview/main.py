from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .db import Base, engine, SessionLocal
from .errors import PeerReviewError, ValidationError
from .lifecycle import advance_statuses, expire_idle_sessions
from .settings import settings
from .routers import health
from .routers import auth
from .routers import assessments
from .routers import responses
from .routers import reports
import asyncio
import logging
from typing import Optional

logger = logging.getLogger(__name__)

# Held so the running sweep task is not garbage collected
_sweep_task: Optional[asyncio.Task] = None

app = FastAPI(title="Peer Review API")
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(assessments.router)
app.include_router(responses.router)
app.include_router(reports.router)


@app.exception_handler(PeerReviewError)
async def peer_review_error_handler(request: Request, exc: PeerReviewError):
	if exc.status_code >= 500:
		logger.error("%s %s failed: %s", request.method, request.url.path, type(exc).__name__)
	return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
	# Malformed bodies and query strings answer in the same shape as domain validation
	errors = []
	for err in exc.errors():
		parts = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
		errors.append({"field": ".".join(parts) or "body", "message": err.get("msg", "invalid value")})
	return await peer_review_error_handler(request, ValidationError(errors))


def run_sweep() -> None:
	db = SessionLocal()
	try:
		advance_statuses(db)
		expire_idle_sessions(db)
	finally:
		db.close()


async def _sweep_watcher():
	# Status changes are time driven; run once at startup, then periodically
	interval = max(1, settings.status_sweep_seconds)
	while True:
		try:
			run_sweep()
		except Exception:
			logger.exception("status sweep failed")
		await asyncio.sleep(interval)


@app.on_event("startup")
async def startup_event():
	global _sweep_task
	logging.basicConfig(level=settings.log_level.upper())
	# Initialize DB schema
	Base.metadata.create_all(bind=engine)
	_sweep_task = asyncio.create_task(_sweep_watcher())


@app.on_event("shutdown")
async def shutdown_event():
	if _sweep_task is not None:
		_sweep_task.cancel()
