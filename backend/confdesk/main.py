# confdesk/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from confdesk.config import settings
from confdesk.core.db import init_db, close_db
from confdesk.core.errors import install_exception_handlers

from confdesk.api.v1.routers import admin, auth, copyright, editor, messages, papers, payments, reviewer

from confdesk.core.bootstrap import ensure_default_admin
logger = logging.getLogger("uvicorn.error")

app = FastAPI(title=settings.APP_NAME)

# CORS (with Cookie)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# {success, message, detail} bodies for every error
install_exception_handlers(app)

@app.on_event("startup")
async def on_startup():
    await init_db()
    # Ensure there's a default admin account on first run
    await ensure_default_admin()
    logger.info("[startup] %s ready (%s)", settings.APP_NAME, settings.env)

@app.on_event("shutdown")
async def on_shutdown():
    await close_db()

# REST
app.include_router(auth.router, prefix="/api/v1")
app.include_router(papers.router, prefix="/api/v1")
app.include_router(editor.router, prefix="/api/v1")
app.include_router(reviewer.router, prefix="/api/v1")
app.include_router(admin.router, prefix="/api/v1")
app.include_router(messages.router, prefix="/api/v1")
app.include_router(copyright.router, prefix="/api/v1")
app.include_router(payments.router, prefix="/api/v1")

@app.get("/healthz")
def healthz():
    return {"ok": True}
