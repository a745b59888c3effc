"""
HTTP routes for the report API.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse

from travelsafe.db import ReportStore, country_filter
from travelsafe.dependencies import (
    get_report_store,
    get_settings_from_app,
    require_api_key,
)
from travelsafe.schemas import ErrorResponse, MessageResponse, coerce_report

logger = logging.getLogger(__name__)

HEALTH_TEXT = "Server is up and running 🚀"
SAVED_MESSAGE = "✅ Report saved successfully"
MAX_LIST_LIMIT = 1000

router = APIRouter()

_auth_responses = {
    401: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


@router.get("/health", response_class=PlainTextResponse, tags=["meta"])
def health() -> str:
    return HEALTH_TEXT


@router.post(
    "/api/weather-safety-data",
    response_model=MessageResponse,
    status_code=201,
    responses=_auth_responses,
    dependencies=[Depends(require_api_key)],
    tags=["reports"],
)
async def save_report(
    request: Request,
    store: ReportStore = Depends(get_report_store),
):
    """
    Store one report. The body is read only after the API key has been checked.
    """
    raw = await request.body()
    try:
        payload = json.loads(raw or b"{}")
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Malformed JSON body"})

    report = coerce_report(payload)
    report_id = await run_in_threadpool(store.insert, report)
    logger.debug("Saved report %s", report_id)
    return MessageResponse(message=SAVED_MESSAGE)


@router.get(
    "/api/user-searches",
    responses=_auth_responses,
    dependencies=[Depends(require_api_key)],
    tags=["reports"],
)
def list_reports(
    request: Request,
    country: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=MAX_LIST_LIMIT),
    store: ReportStore = Depends(get_report_store),
) -> list[dict]:
    if limit is None:
        limit = get_settings_from_app(request).default_list_limit
    reports = store.find(country_filter(country), limit=limit)
    return [r.to_response() for r in reports]
