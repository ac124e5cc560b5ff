"""CLI entrypoint for draft synchronization."""

from __future__ import annotations

import argparse
import asyncio
from dataclasses import replace
import sys
import uuid
from typing import List, Optional

from .backend_client import BackendClient
from .config import load_config
from .draft_loader import DraftFileError, load_drafts
from .kinds import KINDS, get_kind
from .logging_setup import setup_logging
from .options import SyncOptions
from .sync_engine import SyncEngine
from .sync_statistics import SyncStatistics
from .unresolved_store import BackendUnresolvedStore
from .validator import validate_batch


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Synchronize resource drafts into the commerce backend")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync_parser = subparsers.add_parser("sync", help="Create or update backend entities from a draft file")
    sync_parser.add_argument("--kind", required=True, choices=sorted(KINDS), help="Entity kind of the drafts")
    sync_parser.add_argument("--input", required=True, help="YAML or JSON file with drafts")
    sync_parser.add_argument("--batch-size", type=int, help="Override BATCH_SIZE")
    sync_parser.add_argument(
        "--persist-unresolved",
        action="store_true",
        help="Keep drafts waiting on missing references as backend custom objects",
    )

    validate_parser = subparsers.add_parser("validate", help="Validate a draft file without contacting the backend")
    validate_parser.add_argument("--kind", required=True, choices=sorted(KINDS), help="Entity kind of the drafts")
    validate_parser.add_argument("--input", required=True, help="YAML or JSON file with drafts")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    kind = get_kind(args.kind)

    if args.command == "validate":
        try:
            drafts = load_drafts(args.input, kind)
        except DraftFileError as exc:
            print(f"Draft file invalid: {exc}")
            return 2
        validation = validate_batch(drafts, kind.validate)
        for draft, errors in validation.invalid:
            print(f"{getattr(draft, 'key', None)}: {'; '.join(str(error) for error in errors)}")
        print(f"Draft validation: {len(validation.valid)} valid, {len(validation.invalid)} invalid")
        return 0 if not validation.invalid else 1

    config = load_config()
    run_id = str(uuid.uuid4())
    logger = setup_logging(config.log_file, config.log_level, run_id)

    try:
        drafts = load_drafts(args.input, kind)
    except DraftFileError as exc:
        logger.error("draft_file_invalid", extra={"event": "draft_file_invalid", "detail": str(exc)})
        print(f"Draft file invalid: {exc}")
        return 2

    options = SyncOptions.from_config(config)
    if args.batch_size:
        options = replace(options, batch_size=args.batch_size)

    statistics = asyncio.run(_run_sync(config, logger, kind, drafts, options, args.persist_unresolved))
    print(statistics.report_message())
    return 0 if statistics.failed == 0 else 1


async def _run_sync(config, logger, kind, drafts, options: SyncOptions, persist_unresolved: bool) -> SyncStatistics:
    async with BackendClient(config, logger) as client:
        store = BackendUnresolvedStore(client, kind, logger) if persist_unresolved else None
        engine = SyncEngine(kind, client, options, logger, store)
        return await engine.sync(drafts)


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
