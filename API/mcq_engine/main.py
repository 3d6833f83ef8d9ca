from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from mcq_engine.api.batches import router as batches_router
from mcq_engine.api.events import router as events_router
from mcq_engine.api.health import router as health_router
from mcq_engine.api.mappings import router as mappings_router
from mcq_engine.api.mcqs import router as mcqs_router
from mcq_engine.api.statements import router as statements_router
from mcq_engine.core.errors import (
    MCQEngineError,
    engine_exception_handler,
    http_exception_handler,
    request_id_middleware,
    unhandled_exception_handler,
    validation_exception_handler,
)
from mcq_engine.core.logging import configure_logging
from mcq_engine.core.settings import settings

configure_logging(settings.log_level)

app = FastAPI(title="UPSC MCQ Engine API", version="0.1.0")
app.include_router(health_router)
app.include_router(mappings_router)
app.include_router(statements_router)
app.include_router(mcqs_router)
app.include_router(batches_router)
app.include_router(events_router)
app.middleware("http")(request_id_middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(MCQEngineError, engine_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)


def run() -> None:
    import uvicorn

    uvicorn.run("mcq_engine.main:app", host=settings.app_host, port=settings.app_port)
