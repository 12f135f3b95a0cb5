import argparse

from docpipe.bootstrap import build_container
from docpipe.config.settings import Settings
from docpipe.database.connection import close_pool, init_pool
from docpipe.database.schema import ensure_schema
from docpipe.logging.logger import Log


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="docpipe", description="Document pipeline workers")
    commands = parser.add_subparsers(dest="command")
    commands.add_parser("worker", help="run the OCR, validation and persistence workers")
    commands.add_parser("init-db", help="create the database tables")
    commands.add_parser("escalate", help="move exhausted documents to dead letter")
    return parser


def main(argv: list[str] | None = None) -> None:
    """Entry point: initialize pool -> build dependencies -> run the chosen command."""
    args = build_parser().parse_args(argv)
    command = args.command or "worker"

    settings = Settings()
    Log.configure(settings.log_level)
    uses_database = settings.backend.lower() == "postgres"
    if uses_database:
        init_pool(settings)

    try:
        if command == "init-db":
            ensure_schema()
            Log.info("Database schema is ready")
            return

        container = build_container(settings)
        if command == "escalate":
            moved = container.service.escalate_exhausted()
            Log.info(f"Escalated {len(moved)} documents")
            return

        container.build_worker_pool().run_forever()
    finally:
        if uses_database:
            close_pool()


if __name__ == "__main__":
    main()
