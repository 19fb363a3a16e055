# routes.py
from fastapi import FastAPI
from controller.pipeline_controller import pipeline_router


def register_routes(app: FastAPI) -> None:
    """Register & Access control controllers here."""
    app.include_router(pipeline_router)
