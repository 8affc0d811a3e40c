"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Request

from chama_pay.config import Settings, settings
from chama_pay.infrastructure.clients.mpesa import MpesaClient


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_settings() -> Settings:
    """Provide the process-wide settings loaded at startup"""
    return settings


def get_mpesa_client(config: Settings = Depends(get_settings)) -> MpesaClient:
    """Provide Daraja API client instance"""
    return MpesaClient(config=config)
