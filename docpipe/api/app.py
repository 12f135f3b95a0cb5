from fastapi import FastAPI

from docpipe.api.errors import register_exception_handlers
from docpipe.api.health import HealthChecker
from docpipe.api.routes import documents_router, health_router
from docpipe.bootstrap import Container


def create_app(container: Container) -> FastAPI:
    """Build the HTTP application around an already wired container."""
    app = FastAPI(
        title="docpipe",
        description="Document OCR, validation and persistence pipeline",
        version="0.1.0",
    )
    app.state.container = container
    app.state.health_checker = HealthChecker(container)

    register_exception_handlers(app)
    app.include_router(documents_router)
    app.include_router(health_router)
    return app
