"""FastAPI dependencies shared by the routers."""

from __future__ import annotations

from fastapi import Request

from mediagate.services.credentials import CredentialResolver
from mediagate.services.gateway import GenerationGateway


def get_gateway(request: Request) -> GenerationGateway:
    return request.app.state.gateway


def get_resolver(request: Request) -> CredentialResolver:
    return request.app.state.resolver
