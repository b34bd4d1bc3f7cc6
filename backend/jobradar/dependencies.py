"""Accessors for the clients and services created in the app lifespan."""

from fastapi import HTTPException, Request
from supabase._async.client import AsyncClient as AsyncSupabaseClient

from jobradar.services.entitlements import EntitlementService
from jobradar.services.profile_store import ProfileRepository


def get_supabase(request: Request) -> AsyncSupabaseClient:
    client = getattr(request.app.state, "supabase", None)
    if client is None:
        raise HTTPException(status_code=503, detail="Database unavailable")
    return client


def get_profile_repository(request: Request) -> ProfileRepository:
    repository = getattr(request.app.state, "profile_repository", None)
    if repository is None:
        raise HTTPException(status_code=503, detail="Profile store unavailable")
    return repository


def get_entitlement_service(request: Request) -> EntitlementService:
    service = getattr(request.app.state, "entitlement_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Entitlement service unavailable")
    return service
