import asyncio
import logging
import time
from typing import Callable, Iterable, Iterator

import httpx
from fastapi.concurrency import iterate_in_threadpool, run_in_threadpool
from sqlalchemy.orm import Session

from services.company_reconciliation import CompanyReconciler
from services.concurrency_limiter import ConcurrencyLimiter
from services.houjin_csv_source import CsvRow, HoujinCsvSource, open_csv_source
from services.houjin_lookup_client import HoujinLookupClient
from services.import_errors import LookupFailed, ReconcileError
from services.import_report import FAILED, BatchReport, RowResult
from services.import_settings import ImportSettings

logger = logging.getLogger(__name__)


def _row_batches(source: Iterable[CsvRow]) -> Iterator[list[CsvRow]]:
    if isinstance(source, HoujinCsvSource):
        return source.batches()
    # plain iterables are already in memory
    return iter([list(source)])


class HoujinImportCoordinator:
    def __init__(
        self,
        client: HoujinLookupClient,
        reconciler: CompanyReconciler,
        concurrency: int,
    ):
        self.client = client
        self.reconciler = reconciler
        self.concurrency = concurrency

    async def process_row(self, row: CsvRow) -> RowResult:
        logger.debug("Processing %s %s", row.houjin_bangou, row.name)
        try:
            result = await self.client.enrich(row.houjin_bangou)
        except LookupFailed as exc:
            logger.warning("%s", exc)
            return RowResult(houjin_bangou=row.houjin_bangou, action=FAILED, errors=[str(exc)])

        try:
            return await run_in_threadpool(self.reconciler.reconcile, result, row.name)
        except ReconcileError as exc:
            logger.warning("%s", exc)
            return RowResult(houjin_bangou=row.houjin_bangou, action=FAILED, errors=[str(exc)])

    async def run(self, source: Iterable[CsvRow]) -> BatchReport:
        started = time.monotonic()
        limiter = ConcurrencyLimiter(self.concurrency)
        rows: list[CsvRow] = []
        handles: list[asyncio.Task] = []
        source_error = None

        # parsing runs in the threadpool so in-flight lookups keep moving
        try:
            async for batch in iterate_in_threadpool(_row_batches(source)):
                for row in batch:
                    rows.append(row)
                    handles.append(limiter.schedule(lambda row=row: self.process_row(row)))
        except Exception as exc:
            source_error = f"{type(exc).__name__}: {exc}"
            logger.exception("Reading the CSV failed; finishing the %s rows already scheduled", len(rows))

        outcomes = await asyncio.gather(*handles, return_exceptions=True)

        report = BatchReport()
        for row, outcome in zip(rows, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("Unexpected failure for %s: %r", row.houjin_bangou, outcome)
                outcome = RowResult(
                    houjin_bangou=row.houjin_bangou,
                    action=FAILED,
                    errors=[f"{type(outcome).__name__}: {outcome}"],
                )
            report.add(outcome)

        if isinstance(source, HoujinCsvSource):
            report.parse_errors = len(source.parse_errors)
        report.source_error = source_error
        report.elapsed_ms = int((time.monotonic() - started) * 1000)

        logger.info(
            "Zenkoku houjin import %s: rows=%s created=%s updated=%s skipped=%s failed=%s parse_errors=%s",
            report.summary(),
            report.rows,
            report.created,
            report.updated,
            report.skipped,
            report.failed,
            report.parse_errors,
        )
        return report


def open_import_source(settings: ImportSettings) -> HoujinCsvSource:
    return open_csv_source(
        settings.csv_path,
        encoding=settings.csv_encoding,
        chunk_size=settings.csv_chunk_size,
    )


async def run_houjin_import(
    settings: ImportSettings,
    session_factory: Callable[[], Session],
    source: HoujinCsvSource | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> BatchReport:
    if source is None:
        source = open_import_source(settings)

    with source:
        async with HoujinLookupClient(settings, transport=transport) as client:
            coordinator = HoujinImportCoordinator(
                client=client,
                reconciler=CompanyReconciler(session_factory),
                concurrency=settings.concurrency,
            )
            return await coordinator.run(source)
