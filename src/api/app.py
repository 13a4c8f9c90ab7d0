"""
FastAPI application for the insurance ledger.

Provides:
- Role assignment, policy and claim endpoints gated on the caller identity
- Read endpoints for records, holder/claimant indices and notifications
- Health check and status endpoints

The caller identity is asserted by the fronting gateway through the
X-Caller-Identity header.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ..ledger import InsuranceLedger, LedgerError, get_ledger
from ..ledger.schema import (
    EVENT_NAMES,
    ClaimRequest,
    PolicyRequest,
    RoleAssignment,
    StatusUpdate,
)
from ..utils.config import settings

logging.basicConfig(
    level=logging.DEBUG if settings.debug else settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# HTTP status for each rejection code
ERROR_STATUS = {
    "Unauthorized": 403,
    "InvalidRole": 400,
    "InvalidClaimStatus": 400,
    "NotARegisteredUser": 409,
    "PolicyInactive": 409,
    "NotPolicyHolder": 409,
    "ClaimNotPending": 409,
    "RecordNotFound": 404,
}


def bound_ledger(app: FastAPI) -> InsuranceLedger:
    """The ledger bound to `app`, binding the default ledger on first use."""
    ledger = getattr(app.state, "ledger", None)
    if ledger is None:
        ledger = get_ledger()
        app.state.ledger = ledger
    return ledger


def get_app_ledger(request: Request) -> InsuranceLedger:
    return bound_ledger(request.app)


def get_caller(x_caller_identity: Optional[str] = Header(default=None)) -> str:
    """Caller identity asserted by the gateway."""
    if not x_caller_identity or not x_caller_identity.strip():
        raise HTTPException(status_code=401, detail="X-Caller-Identity header is required")
    return x_caller_identity.strip()


def create_app(ledger: Optional[InsuranceLedger] = None) -> FastAPI:
    """
    Build the service around `ledger`.

    Args:
        ledger: Ledger to serve. When omitted the default ledger from
            settings is used on first request.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        logger.info("Starting insurance ledger service...")
        current = bound_ledger(app)
        logger.info(f"Owner: {current.owner}, strict lookup: {current.strict_lookup}")
        yield
        logger.info("Shutting down insurance ledger service...")

    app = FastAPI(
        title="Insurance Ledger",
        description="Authorization-gated policy and claim ledger",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.ledger = ledger

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        return JSONResponse(
            status_code=ERROR_STATUS.get(exc.code, 400),
            content=exc.to_dict(),
        )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(
            status_code=422,
            content={"error": "ValidationError", "detail": exc.errors(include_url=False)},
        )

    # =========================================================================
    # Health Check Endpoints
    # =========================================================================

    @app.get("/")
    async def root(ledger: InsuranceLedger = Depends(get_app_ledger)):
        """Root endpoint - basic health check."""
        return {
            "service": "Insurance Ledger",
            "status": "running",
            "owner": ledger.owner,
        }

    @app.get("/health")
    async def health_check(ledger: InsuranceLedger = Depends(get_app_ledger)):
        """Detailed health check endpoint."""
        return {
            "status": "healthy",
            "policies": ledger.policy_count,
            "claims": ledger.claim_count,
            "notifications": ledger.events.published_count,
            "config": {
                "strict_lookup": ledger.strict_lookup,
                "event_history_size": settings.event_history_size,
            },
        }

    # =========================================================================
    # Roles
    # =========================================================================

    @app.post("/roles")
    async def assign_role(
        body: RoleAssignment,
        caller: str = Depends(get_caller),
        ledger: InsuranceLedger = Depends(get_app_ledger),
    ):
        role = ledger.assign_role(caller, body.target, body.role)
        return {"target": body.target, "role": role.value}

    @app.get("/roles/{identity}")
    async def get_role(identity: str, ledger: InsuranceLedger = Depends(get_app_ledger)):
        return {"identity": identity, "role": ledger.get_role(identity).value}

    # =========================================================================
    # Policies
    # =========================================================================

    @app.post("/policies", status_code=201)
    async def issue_policy(
        body: PolicyRequest,
        caller: str = Depends(get_caller),
        ledger: InsuranceLedger = Depends(get_app_ledger),
    ):
        policy_id = ledger.issue_policy(caller, body.user, body.details, body.coverage_amount)
        return {"policy_id": policy_id, "holder": body.user}

    @app.post("/policies/{policy_id}/deactivate")
    async def deactivate_policy(
        policy_id: int,
        caller: str = Depends(get_caller),
        ledger: InsuranceLedger = Depends(get_app_ledger),
    ):
        ledger.deactivate_policy(caller, policy_id)
        return ledger.get_policy(policy_id).model_dump(mode="json")

    @app.get("/policies/{policy_id}")
    async def get_policy(policy_id: int, ledger: InsuranceLedger = Depends(get_app_ledger)):
        """Stored policy; a zero-valued record (id 0) when absent."""
        return ledger.get_policy(policy_id).model_dump(mode="json")

    @app.get("/holders/{identity}/policies")
    async def get_user_policies(identity: str, ledger: InsuranceLedger = Depends(get_app_ledger)):
        return {"holder": identity, "policy_ids": ledger.get_user_policies(identity)}

    # =========================================================================
    # Claims
    # =========================================================================

    @app.post("/claims", status_code=201)
    async def submit_claim(
        body: ClaimRequest,
        caller: str = Depends(get_caller),
        ledger: InsuranceLedger = Depends(get_app_ledger),
    ):
        claim_id = ledger.submit_claim(caller, body.policy_id, body.description, body.amount)
        return {"claim_id": claim_id, "policy_id": body.policy_id, "claimant": caller}

    @app.post("/claims/{claim_id}/status")
    async def update_claim_status(
        claim_id: int,
        body: StatusUpdate,
        caller: str = Depends(get_caller),
        ledger: InsuranceLedger = Depends(get_app_ledger),
    ):
        status = ledger.update_claim_status(caller, claim_id, body.status)
        return {"claim_id": claim_id, "status": status.value}

    @app.get("/claims/{claim_id}")
    async def get_claim(claim_id: int, ledger: InsuranceLedger = Depends(get_app_ledger)):
        """Stored claim; a zero-valued record (id 0) when absent."""
        return ledger.get_claim(claim_id).model_dump(mode="json")

    @app.get("/claimants/{identity}/claims")
    async def get_user_claims(identity: str, ledger: InsuranceLedger = Depends(get_app_ledger)):
        return {"claimant": identity, "claim_ids": ledger.get_user_claims(identity)}

    # =========================================================================
    # Notifications and Snapshot
    # =========================================================================

    @app.get("/events")
    async def list_events(
        name: Optional[str] = None,
        limit: Optional[int] = None,
        ledger: InsuranceLedger = Depends(get_app_ledger),
    ):
        if name is not None and name not in EVENT_NAMES:
            return JSONResponse(
                status_code=400,
                content={"error": "UnknownEvent", "detail": f"Unknown notification: {name}"},
            )
        events = ledger.events.history(name=name, limit=limit)
        return {"events": [e.model_dump(mode="json") for e in events]}

    @app.get("/ledger")
    async def snapshot(ledger: InsuranceLedger = Depends(get_app_ledger)):
        return ledger.snapshot()

    return app


app = create_app()


# =============================================================================
# Main Entry Point
# =============================================================================


def main():
    """Run the FastAPI server."""
    import uvicorn

    uvicorn.run(
        "src.api.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
