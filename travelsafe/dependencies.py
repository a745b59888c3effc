"""
Dependency wiring for the FastAPI app.

Services are constructed once in ``create_app()`` and kept on ``app.state``;
the functions here hand them to route handlers.
"""

from __future__ import annotations

import secrets
from typing import Optional

from fastapi import Header, Request

from travelsafe.config import Settings
from travelsafe.db import ReportStore
from travelsafe.errors import Unauthorized


def get_settings_from_app(request: Request) -> Settings:
    return request.app.state.settings


def get_report_store(request: Request) -> ReportStore:
    return request.app.state.report_store


def require_api_key(
    request: Request,
    x_api_key: Optional[str] = Header(default=None),
) -> None:
    expected = get_settings_from_app(request).api_key
    if not x_api_key or not expected:
        raise Unauthorized()
    if not secrets.compare_digest(x_api_key.encode("utf-8"), expected.encode("utf-8")):
        raise Unauthorized()
