import uvicorn

from docpipe.api.app import create_app
from docpipe.bootstrap import build_container
from docpipe.config.settings import Settings
from docpipe.database.connection import close_pool, init_pool
from docpipe.logging.logger import Log


def main() -> None:
    """Entry point: initialize pool -> build dependencies -> serve the API.

    With the memory backend the worker pool runs inside the API process,
    since nothing else can reach its queue.
    """
    settings = Settings()
    Log.configure(settings.log_level)
    uses_database = settings.backend.lower() == "postgres"
    if uses_database:
        init_pool(settings)

    container = build_container(settings)
    pool = None if uses_database else container.build_worker_pool()
    try:
        if pool is not None:
            pool.start()
        uvicorn.run(create_app(container), host=settings.api_host, port=settings.api_port)
    finally:
        if pool is not None:
            pool.stop()
        if uses_database:
            close_pool()


if __name__ == "__main__":
    main()
