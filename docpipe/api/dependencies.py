from fastapi import Request

from docpipe.api.health import HealthChecker
from docpipe.bootstrap import Container
from docpipe.service.document_service import DocumentService


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_service(request: Request) -> DocumentService:
    return get_container(request).service


def get_health_checker(request: Request) -> HealthChecker:
    return request.app.state.health_checker
