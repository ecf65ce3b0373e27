# /app/core/deps.py
from fastapi import Request

from app.core.config import Settings
from app.services.grant_service import GrantService
from app.services.ledger_service import GrantLedger


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_ledger(request: Request) -> GrantLedger:
    return request.app.state.ledger


def get_grant_service(request: Request) -> GrantService:
    return request.app.state.grant_service
