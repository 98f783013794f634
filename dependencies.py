"""
FastAPI dependency providers.

All injectable dependencies are defined here as plain functions used with
FastAPI's Depends() system. Everything lives on app.state, populated by the
app factory (settings, signature verifier) and its lifespan (HTTP client,
membership provider, provisioning service).
"""

from __future__ import annotations

from fastapi import Request

from config import AppSettings
from infrastructure.payments.protocol import SignatureVerifier
from services.provisioning_service import ProvisioningService


def get_settings(request: Request) -> AppSettings:
    """Return the AppSettings instance stored on app.state."""
    return request.app.state.settings


def get_signature_verifier(request: Request) -> SignatureVerifier:
    return request.app.state.signature_verifier


def get_provisioning_service(request: Request) -> ProvisioningService:
    return request.app.state.provisioning_service
