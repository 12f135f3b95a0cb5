import time
from collections.abc import Callable
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

from docpipe.api.schemas import HealthResponse, ReadinessResponse, ServiceHealth
from docpipe.bootstrap import Container


def _package_version() -> str:
    try:
        return version("docpipe")
    except PackageNotFoundError:
        return "0.0.0"


class HealthChecker:
    """Probes the document store, the job queue and the storage root."""

    def __init__(self, container: Container) -> None:
        self._container = container
        self._started = time.monotonic()
        self._version = _package_version()

    def check_health(self) -> HealthResponse:
        services = self._check_services()
        healthy = all(s.status == "up" for s in services.values())
        return HealthResponse(
            status="healthy" if healthy else "unhealthy",
            timestamp=datetime.now(timezone.utc),
            uptime=int(time.monotonic() - self._started),
            version=self._version,
            services=services,
        )

    def check_readiness(self) -> ReadinessResponse:
        services = self._check_services()
        return ReadinessResponse(
            ready=all(s.status == "up" for s in services.values()),
            timestamp=datetime.now(timezone.utc),
            services=services,
        )

    def _check_services(self) -> dict[str, ServiceHealth]:
        return {
            "database": self._probe(self._container.repository.ping),
            "queue": self._probe(self._container.queue.ping),
            "storage": self._probe(self._storage_ready),
        }

    def _storage_ready(self) -> bool:
        root = Path(self._container.settings.storage_root)
        root.mkdir(parents=True, exist_ok=True)
        return root.is_dir()

    @staticmethod
    def _probe(check: Callable[[], bool]) -> ServiceHealth:
        try:
            ok = check()
        except Exception as exc:
            return ServiceHealth(status="down", error=str(exc))
        return ServiceHealth(status="up" if ok else "down")
