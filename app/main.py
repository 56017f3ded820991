from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from app.core.db import engine, init_db
from app.core.notifications import NotificationHub
from app.providers.registry import build_provider_registry
from app.utils.exception_handlers import (
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from app.utils.router_discovery import register_routers


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, FastAPI]:
    await init_db()
    app.state.provider_registry = build_provider_registry()
    app.state.notifications = NotificationHub()

    yield

    await app.state.provider_registry.aclose()
    await engine.dispose()


app = FastAPI(
    title="Gacha API",
    lifespan=app_lifespan,
    servers=[{"url": "http://localhost:3011", "description": "Local server"}],
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


register_routers(app)

app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)


@app.get("/")
async def healthz() -> str:
    return "OK"
