"""
Transfer run lifecycle.

``run_transfer`` drives one complete run:

1. Validate the configuration and load the transform, if any.
2. Load and check the resume state, or start a fresh one.
3. Dry runs with a transform: try the transform on sample documents.
4. Optionally clear destination collections, then count the source.
5. Copy every top-level collection, up to ``parallel`` at a time.
6. Optionally delete destination orphans and verify counts.
7. Flush progress and delete the state file on success.

Fatal errors (oversized documents, exhausted queries or commits, bad state or
configuration) end the run with ``success=False``; progress saved so far stays
in the state file for ``--resume``.
"""

from __future__ import annotations

import logging
import time

from fscopy.config import TransferConfig, ensure_valid_config
from fscopy.exceptions import FscopyError, TransferError, TransferStateError
from fscopy.models import TransferResult, TransferStats
from fscopy.observability import (
    ATTR_COLLECTION_COUNT,
    ATTR_DESTINATION,
    ATTR_DRY_RUN,
    ATTR_RESUME,
    ATTR_SOURCE,
    Tracer,
    create_tracer,
)
from fscopy.rate_limiter import RateLimiter
from fscopy.state import (
    StateTracker,
    create_initial_state,
    delete_transfer_state,
    load_transfer_state,
    save_transfer_state,
    validate_state_for_resume,
)
from fscopy.stores.interface import DocumentDatabase
from fscopy.transfer import (
    CollectionWalker,
    TransferContext,
    TransformFunction,
    clear_collection,
    count_documents,
    delete_orphan_documents,
    dest_collection_path,
    process_in_parallel,
    verify_transfer,
)
from fscopy.transform import load_transform_function

module_logger = logging.getLogger(__name__)


async def run_transfer(
    config: TransferConfig,
    source: DocumentDatabase,
    destination: DocumentDatabase,
    *,
    transform: TransformFunction | None = None,
    logger: logging.Logger | None = None,
    tracer: Tracer | None = None,
    enable_tracing: bool = True,
) -> TransferResult:
    """
    Run a complete transfer from ``source`` to ``destination``.

    Both databases must already be open; see ``fscopy.stores.open_databases``.

    Args:
        config: Transfer configuration
        source: Source database
        destination: Destination database
        transform: Transform function; loaded from ``config.transform`` if None
        logger: Logger for run events (defaults to this module's logger)
        tracer: Optional custom Tracer instance
        enable_tracing: Create an OpenTelemetry tracer when none is given

    Returns:
        TransferResult with final stats; ``success`` is False on a fatal error

    Example:
        >>> async with open_databases(src, dst) as (source, destination):
        ...     result = await run_transfer(config, source, destination)
        >>> result.stats.documents_transferred
        42
    """
    log = logger or module_logger
    tracer = tracer or create_tracer(__name__, enable_tracing)
    started = time.monotonic()
    stats = TransferStats()
    tracker: StateTracker | None = None
    ctx: TransferContext | None = None

    with tracer.span(
        "fscopy.transfer.run",
        {
            ATTR_SOURCE: config.source_project or "",
            ATTR_DESTINATION: config.dest_project or "",
            ATTR_DRY_RUN: config.dry_run,
            ATTR_RESUME: config.resume,
            ATTR_COLLECTION_COUNT: len(config.collections),
        },
    ):
        try:
            ensure_valid_config(config)

            if transform is None and config.transform:
                transform = load_transform_function(config.transform)
                log.info("Loaded transform from %s", config.transform)

            tracker, stats = _prepare_state(config, log)

            if transform is not None and config.dry_run:
                await validate_transform_samples(source, config, transform, log)

            if config.clear:
                stats.documents_deleted += await _clear_destination(destination, config, log)

            await _count_source(source, config, log)

            rate_limiter = RateLimiter(config.rate_limit) if config.rate_limit > 0 else None
            if rate_limiter is not None:
                log.info("Rate limiting enabled: %s docs/s", config.rate_limit)

            ctx = TransferContext(
                source=source,
                destination=destination,
                config=config,
                stats=stats,
                transform=transform,
                tracker=tracker,
                rate_limiter=rate_limiter,
                tracer=tracer,
                logger=log,
            )
            await _execute(ctx)

            if config.delete_missing:
                for collection in config.collections:
                    stats.documents_deleted += await delete_orphan_documents(
                        source, destination, collection, config
                    )

            verify_result = None
            if config.verify and not config.dry_run:
                verify_result = await verify_transfer(source, destination, config)

            if tracker is not None:
                await tracker.flush()
            if not config.dry_run:
                delete_transfer_state(config.state_file)

            duration = time.monotonic() - started
            log.info(
                "Transfer completed in %.2fs",
                duration,
                extra={"stats": stats.to_dict(), "duration_seconds": duration},
            )
            return TransferResult(
                success=True,
                stats=stats,
                duration_seconds=duration,
                verify_result=verify_result,
                conflicts=list(ctx.conflicts),
            )

        except FscopyError as e:
            log.error(
                "Transfer failed: %s",
                e.message,
                extra={"error": e.to_dict(), "stats": stats.to_dict()},
            )
            return await _failed(e, stats, tracker, ctx, started)
        except Exception as e:
            log.exception("Transfer failed with unexpected error: %s", e)
            return await _failed(e, stats, tracker, ctx, started)


def _prepare_state(
    config: TransferConfig,
    log: logging.Logger,
) -> tuple[StateTracker | None, TransferStats]:
    if config.resume:
        state = load_transfer_state(config.state_file)
        if state is None:
            raise TransferStateError(
                f"No state file found at {config.state_file}. Cannot resume without a saved state.",
                suggested_action="Run without --resume to start fresh",
            )
        problems = validate_state_for_resume(state, config)
        if problems:
            raise TransferStateError(
                "Cannot resume: state file incompatible with current config: "
                + "; ".join(problems),
                suggested_action="Use the original source, destination and collections, "
                "or delete the state file",
            )

        restored = TransferStats.from_dict(state.stats)
        # the traversal recounts completed documents and collections
        restored.documents_transferred = 0
        restored.collections_processed = 0

        tracker = StateTracker(config.state_file, state)
        log.info(
            "Resuming transfer from %s (started %s, %d documents completed)",
            config.state_file,
            state.started_at.isoformat(),
            tracker.completed_count,
        )
        for collection in config.collections:
            log.debug(
                "%s: %d documents already completed",
                collection,
                len(tracker.completed_ids(collection)),
                extra={"collection": collection},
            )
        return tracker, restored

    if config.dry_run:
        return None, TransferStats()

    state = create_initial_state(config)
    save_transfer_state(config.state_file, state)
    log.info("State will be saved to %s (use --resume to continue if interrupted)", config.state_file)
    return StateTracker(config.state_file, state), TransferStats()


async def validate_transform_samples(
    source: DocumentDatabase,
    config: TransferConfig,
    transform: TransformFunction,
    log: logging.Logger | None = None,
) -> tuple[int, int, int]:
    """
    Try the transform on sample documents of every top-level collection.

    ``config.transform_samples`` documents per collection are used
    (-1 = all documents, 0 = no validation). Nothing is written.

    Returns:
        (transformed, skipped, failed) sample counts
    """
    log = log or module_logger
    if config.transform_samples == 0:
        return 0, 0, 0

    limit = 0 if config.transform_samples < 0 else config.transform_samples
    transformed = skipped = failed = 0

    for collection in config.collections:
        for doc in await source.query(collection, limit=limit):
            try:
                result = transform(doc.data, {"id": doc.id, "path": doc.path})
            except Exception as e:
                failed += 1
                log.warning("Transform error on %s: %s", doc.path, e)
                continue
            if result is None:
                skipped += 1
            else:
                transformed += 1

    if failed:
        log.warning("%d transform sample(s) failed, review your transform function", failed)
    elif transformed or skipped:
        log.info("Tested %d transform sample(s), %d would be skipped", transformed, skipped)
    return transformed, skipped, failed


async def _count_source(
    source: DocumentDatabase,
    config: TransferConfig,
    log: logging.Logger,
) -> int | None:
    """Count the source for progress reporting; a failed count does not stop the run."""
    total = 0
    try:
        for collection in config.collections:
            total += await count_documents(source, collection, config)
    except Exception as e:
        log.warning(
            "Could not count source documents: %s",
            e,
            extra={"error_type": type(e).__name__},
        )
        return None
    log.info("Found %d documents to transfer", total, extra={"documents": total})
    return total


async def _clear_destination(
    destination: DocumentDatabase,
    config: TransferConfig,
    log: logging.Logger,
) -> int:
    deleted = 0
    for collection in config.collections:
        dest_collection = dest_collection_path(collection, config.rename_collection)
        deleted += await clear_collection(
            destination,
            dest_collection,
            config,
            include_subcollections=config.include_subcollections,
        )
    log.info("Cleared %d destination documents", deleted)
    return deleted


async def _execute(ctx: TransferContext) -> None:
    walker = CollectionWalker(ctx)
    result = await process_in_parallel(
        ctx.config.collections,
        ctx.config.parallel,
        walker.walk,
        stop_on=(TransferError,),
    )

    fatal: TransferError | None = None
    for collection, error in result.errors:
        if isinstance(error, TransferError):
            fatal = fatal or error
            continue
        ctx.stats.errors += 1
        ctx.logger.error(
            "Transfer failed for %s: %s",
            collection,
            error,
            extra={"collection": collection, "error_type": type(error).__name__},
        )
    if fatal is not None:
        raise fatal


async def _failed(
    error: Exception,
    stats: TransferStats,
    tracker: StateTracker | None,
    ctx: TransferContext | None,
    started: float,
) -> TransferResult:
    if tracker is not None:
        await tracker.flush()
    return TransferResult(
        success=False,
        stats=stats,
        duration_seconds=time.monotonic() - started,
        error=error,
        conflicts=list(ctx.conflicts) if ctx is not None else [],
    )


__all__ = ["run_transfer", "validate_transform_samples"]
