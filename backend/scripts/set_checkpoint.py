import argparse

from loguru import logger

from app.core.config import get_settings
from app.db import init_db
from app.repositories import CheckpointRepository
from ingestion.service import SessionFactory, session_scope
from pipelines.checkpoint import CheckpointStore


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Set last_processed_block directly to skip historical replay",
    )
    parser.add_argument(
        "block",
        type=int,
        nargs="?",
        default=None,
        help="Block number to record as fully processed",
    )
    parser.add_argument(
        "--show",
        action="store_true",
        help="Print the current checkpoint and exit",
    )
    return parser.parse_args(argv)


def main(argv=None, session_factory: SessionFactory | None = None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    init_db()

    if args.show or args.block is None:
        with session_scope(session_factory) as session:
            current = CheckpointRepository(session).read()
        if current is None:
            logger.info("No checkpoint recorded yet (start block {})", settings.start_block)
        else:
            logger.info("Last processed block: {}", current)
        return 0

    if args.block < 0:
        logger.error("Block number must be non-negative, got {}", args.block)
        return 2

    store = CheckpointStore(session_factory, start_block=settings.start_block)
    store.override(args.block)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
