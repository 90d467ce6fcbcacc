"""Top level API router registration."""
from fastapi import APIRouter, FastAPI

from transfer_agent.api.routes import (
    auth,
    documents,
    health,
    issuers,
    notifications,
    positions,
    securities,
    shareholders,
    splits,
    transfer_requests,
    transfers,
    users,
)

ISSUER_SCOPE = "/issuers/{issuer_id}"


def register_routes(application: FastAPI) -> None:
    """Register all API routers with the FastAPI application."""
    api_router = APIRouter(prefix="/api")

    api_router.include_router(health.router, tags=["health"])
    api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
    api_router.include_router(users.accounts_router, tags=["users"])
    api_router.include_router(issuers.router, prefix="/issuers", tags=["issuers"])
    api_router.include_router(
        shareholders.router, prefix=f"{ISSUER_SCOPE}/shareholders", tags=["shareholders"]
    )
    api_router.include_router(securities.router, prefix=ISSUER_SCOPE, tags=["securities"])
    api_router.include_router(transfers.router, prefix=ISSUER_SCOPE, tags=["transfers"])
    api_router.include_router(positions.router, prefix=ISSUER_SCOPE, tags=["positions"])
    api_router.include_router(documents.router, prefix=ISSUER_SCOPE, tags=["documents"])
    api_router.include_router(users.router, prefix=ISSUER_SCOPE, tags=["users"])
    api_router.include_router(splits.router, prefix=ISSUER_SCOPE, tags=["splits"])
    api_router.include_router(transfer_requests.router, prefix=ISSUER_SCOPE, tags=["transfer-requests"])
    api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])

    application.include_router(api_router)


__all__ = ["register_routes"]
