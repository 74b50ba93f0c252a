import logging
from typing import Callable

import httpx
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlalchemy.orm import Session

from db.deps import get_session_factory
from models.import_schemas import ImportTriggerResponse
from services.houjin_csv_source import HoujinCsvSource
from services.houjin_import import open_import_source, run_houjin_import
from services.import_errors import SourceUnavailable
from services.import_settings import ImportSettings, get_import_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/import", tags=["import"])

IN_PROGRESS = "in progress"


def get_lookup_transport() -> httpx.AsyncBaseTransport | None:
    return None


async def _run_in_background(
    settings: ImportSettings,
    session_factory: Callable[[], Session],
    source: HoujinCsvSource,
    transport: httpx.AsyncBaseTransport | None,
) -> None:
    try:
        await run_houjin_import(settings, session_factory, source=source, transport=transport)
    except Exception:
        logger.exception("Zenkoku houjin import aborted")


@router.get("/zenkoku-houjin", response_model=ImportTriggerResponse)
async def import_zenkoku_houjin(
    background_tasks: BackgroundTasks,
    settings: ImportSettings = Depends(get_import_settings),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    transport: httpx.AsyncBaseTransport | None = Depends(get_lookup_transport),
):
    try:
        source = open_import_source(settings)
    except SourceUnavailable as exc:
        logger.error("%s", exc)
        raise HTTPException(status_code=500, detail=str(exc))

    if settings.wait_for_completion:
        report = await run_houjin_import(settings, session_factory, source=source, transport=transport)
        return {"body": report.summary(), "report": report.to_dict()}

    background_tasks.add_task(_run_in_background, settings, session_factory, source, transport)
    logger.info("Zenkoku houjin import started from %s", settings.csv_path)
    return {"body": IN_PROGRESS}
