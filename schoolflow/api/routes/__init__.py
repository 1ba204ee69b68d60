from fastapi import FastAPI

from .workflows import router as workflows_router
from .notifications import router as notifications_router

def register_routes(app: FastAPI):
    app.include_router(workflows_router, prefix="/v1")
    app.include_router(notifications_router, prefix="/v1")
