"""
Bonus Microservice API

Bonus lifecycle engine: eligibility, awards, turnover tracking and
ledger-backed conversion, forfeiture and expiry.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Response

from core.config import get_settings
from core.logger import setup_service_logger
from core.nats_client import get_event_bus

from . import __version__
from .bonus_engine import BonusEngine
from .bonus_repository import BonusRepository
from .factory import create_bonus_engine
from .models import (
    ApprovalDecisionRequest,
    AwardBonusRequest,
    AwardResponse,
    BonusActionRequest,
    BonusTransactionListResponse,
    BonusTypesResponse,
    CheckEligibilityRequest,
    EligibilityResponse,
    EligibleTemplateResponse,
    FindEligibleRequest,
    ForfeitBonusRequest,
    HealthCheckResponse,
    UserBonus,
    UserBonusListResponse,
    utc_now,
)
from .protocols import (
    NO_HANDLER_ERROR_CODE,
    REQUIRES_APPROVAL_ERROR_CODE,
    ApprovalNotFoundError,
    BonusAwardFailedError,
    BonusServiceError,
    InvalidBonusStateError,
    LedgerTransferError,
    TemplateNotFoundError,
    UserBonusNotFoundError,
)

config = get_settings()

# Configure logging
logger = setup_service_logger("bonus_service", level=config.log_level.upper(), config=config.logging)

# Global variables
bonus_engine: Optional[BonusEngine] = None
repository: Optional[BonusRepository] = None
event_bus = None  # NATS event bus
scheduler = None  # APScheduler for the expiry sweep
SERVICE_PORT = config.service_port or 9003


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management"""
    global bonus_engine, repository, event_bus, scheduler

    try:
        # Initialize NATS event bus
        if config.infra.nats_enabled:
            try:
                event_bus = await get_event_bus("bonus_service", servers=config.infra.nats_servers)
                logger.info("✅ Event bus initialized successfully")
            except Exception as e:
                logger.warning(
                    f"⚠️  Failed to initialize event bus: {e}. Continuing without event subscriptions."
                )
                event_bus = None

        repository = BonusRepository(config=config)
        await repository.initialize()

        bonus_engine = create_bonus_engine(config=config, repository=repository, event_bus=event_bus)

        # Subscribe to upstream activity events
        if event_bus:
            try:
                from .events import get_event_handlers

                handler_map = get_event_handlers(bonus_engine)
                for pattern, handler_func in handler_map.items():
                    await event_bus.subscribe_to_events(
                        pattern=pattern,
                        handler=handler_func,
                        durable=f"bonus-{pattern.replace('.', '-').replace('*', 'all')}-consumer",
                    )
                    logger.info(f"✅ Subscribed to {pattern}")

                logger.info(f"✅ Bonus event subscriber started ({len(handler_map)} event patterns)")

            except Exception as e:
                logger.warning(f"⚠️  Failed to subscribe to events: {e}")

        # Start expiry sweep (APScheduler)
        try:
            from apscheduler.schedulers.asyncio import AsyncIOScheduler

            scheduler = AsyncIOScheduler()
            scheduler.add_job(
                bonus_engine.expire_old_bonuses,
                'interval',
                minutes=config.expiry_sweep_minutes,
                id='bonus_expiry_job',
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            scheduler.start()
            logger.info(f"✅ Bonus expiry scheduler started (every {config.expiry_sweep_minutes} minutes)")

        except Exception as e:
            logger.warning(f"⚠️  Failed to start expiry scheduler: {e}")
            scheduler = None

        logger.info(
            f"✅ Bonus service started on port {SERVICE_PORT} "
            f"({len(bonus_engine.get_supported_types())} bonus types)"
        )
        yield

    except Exception as e:
        logger.error(f"Failed to initialize bonus service: {e}")
        raise
    finally:
        if scheduler:
            try:
                scheduler.shutdown()
                logger.info("✅ Bonus expiry scheduler stopped")
            except Exception as e:
                logger.error(f"❌ Failed to stop scheduler: {e}")

        if event_bus:
            try:
                await event_bus.close()
                logger.info("Bonus event bus closed")
            except Exception as e:
                logger.error(f"Error closing event bus: {e}")

        if repository:
            await repository.close()
            logger.info("Bonus service database connections closed")


# Create FastAPI application
app = FastAPI(
    title="Bonus Service",
    description="Bonus eligibility, awards, turnover and ledger-backed lifecycle",
    version=__version__,
    lifespan=lifespan,
)


# ====================
# Dependency Injection
# ====================


async def get_bonus_engine() -> BonusEngine:
    """Get bonus engine instance"""
    if not bonus_engine:
        raise HTTPException(status_code=503, detail="Bonus service not initialized")
    return bonus_engine


def _to_http_error(e: BonusServiceError) -> HTTPException:
    if isinstance(e, (UserBonusNotFoundError, ApprovalNotFoundError, TemplateNotFoundError)):
        status_code = 404
    elif isinstance(e, (InvalidBonusStateError, BonusAwardFailedError)):
        status_code = 409
    elif isinstance(e, LedgerTransferError):
        status_code = 502
    else:
        status_code = 400
    return HTTPException(status_code=status_code, detail={"code": e.code, "message": str(e)})


# ====================
# Health Check and Service Info
# ====================


@app.get("/api/v1/bonuses/health", response_model=HealthCheckResponse)
@app.get("/health", response_model=HealthCheckResponse)
async def health_check():
    """Basic health check"""
    dependencies = {}

    try:
        if repository:
            dependencies["database"] = "healthy" if await repository.health_check() else "unhealthy"
        else:
            dependencies["database"] = "unhealthy"
    except Exception:
        dependencies["database"] = "unhealthy"

    if event_bus:
        dependencies["event_bus"] = "healthy" if event_bus.is_connected else "unhealthy"
    else:
        dependencies["event_bus"] = "not_configured"

    dependencies["scheduler"] = "healthy" if scheduler and scheduler.running else "not_configured"

    status = "healthy" if all(v in ["healthy", "not_configured"] for v in dependencies.values()) else "degraded"

    return HealthCheckResponse(
        status=status,
        service="bonus_service",
        port=SERVICE_PORT,
        version=__version__,
        timestamp=utc_now().isoformat(),
        dependencies=dependencies,
    )


@app.get("/api/v1/bonuses/types", response_model=BonusTypesResponse)
async def get_bonus_types(engine: BonusEngine = Depends(get_bonus_engine)):
    """Registered bonus types, grouped by category"""
    return BonusTypesResponse(
        types=engine.get_supported_types(),
        categories=engine.get_types_by_category(),
    )


# ====================
# Eligibility & Award
# ====================


@app.post("/api/v1/bonuses/eligibility", response_model=EligibilityResponse)
async def check_eligibility(
    request: CheckEligibilityRequest,
    engine: BonusEngine = Depends(get_bonus_engine),
):
    """Check whether a user qualifies for a bonus type"""
    try:
        result = await engine.check_eligibility(request.bonus_type, request.context)
        return EligibilityResponse(
            eligible=result.eligible,
            reason=result.reason,
            reasons=result.reasons,
            template_id=result.template.id if result.template else None,
            template_code=result.template.code if result.template else None,
        )
    except Exception as e:
        logger.error(f"Error checking eligibility: {e}")
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


@app.post("/api/v1/bonuses/eligible", response_model=list[EligibleTemplateResponse])
async def find_eligible_bonuses(
    request: FindEligibleRequest,
    engine: BonusEngine = Depends(get_bonus_engine),
):
    """Every template the user currently qualifies for, highest priority first"""
    try:
        templates = await engine.find_eligible_bonuses(request.context)
        return [
            EligibleTemplateResponse(
                bonus_type=t.type,
                template_id=t.id,
                template_code=t.code,
                name=t.name,
                priority=t.priority,
            )
            for t in templates
        ]
    except Exception as e:
        logger.error(f"Error finding eligible bonuses: {e}")
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


@app.post("/api/v1/bonuses/award", response_model=AwardResponse)
async def award_bonus(
    request: AwardBonusRequest,
    response: Response,
    engine: BonusEngine = Depends(get_bonus_engine),
):
    """Award a bonus; ineligibility comes back as success=false, not an HTTP error"""
    try:
        result = await engine.award(request.bonus_type, request.context)
    except BonusServiceError as e:
        raise _to_http_error(e)
    except Exception as e:
        logger.error(f"Error awarding bonus: {e}")
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")

    if result.error_code == NO_HANDLER_ERROR_CODE:
        raise HTTPException(status_code=404, detail={"code": NO_HANDLER_ERROR_CODE, "message": result.error})
    if result.success:
        response.status_code = 201
    elif result.error_code == REQUIRES_APPROVAL_ERROR_CODE and result.pending_token:
        response.status_code = 202
    return AwardResponse(**result.model_dump())


@app.post("/api/v1/bonuses/approvals/{token}/approve", response_model=AwardResponse)
async def approve_pending_bonus(
    token: str,
    request: ApprovalDecisionRequest,
    engine: BonusEngine = Depends(get_bonus_engine),
):
    """Approve a parked award"""
    try:
        result = await engine.approve_pending(token, approved_by=request.actor)
        return AwardResponse(**result.model_dump())
    except BonusServiceError as e:
        raise _to_http_error(e)
    except Exception as e:
        logger.error(f"Error approving bonus {token}: {e}")
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


@app.post("/api/v1/bonuses/approvals/{token}/reject")
async def reject_pending_bonus(
    token: str,
    request: ApprovalDecisionRequest,
    engine: BonusEngine = Depends(get_bonus_engine),
):
    """Reject a parked award"""
    try:
        pending = await engine.reject_pending(token, rejected_by=request.actor, reason=request.reason)
        return {"success": True, "token": token, "user_id": pending.get("user_id")}
    except BonusServiceError as e:
        raise _to_http_error(e)
    except Exception as e:
        logger.error(f"Error rejecting bonus {token}: {e}")
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


# ====================
# User Bonuses
# ====================


@app.get("/api/v1/bonuses/users/{user_id}", response_model=UserBonusListResponse)
async def list_user_bonuses(
    user_id: str,
    status: Optional[str] = None,
    engine: BonusEngine = Depends(get_bonus_engine),
):
    """List a user's bonuses"""
    try:
        bonuses = await engine.list_user_bonuses(user_id, status=status)
        return UserBonusListResponse(bonuses=bonuses, total=len(bonuses))
    except Exception as e:
        logger.error(f"Error listing bonuses for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


@app.get("/api/v1/bonuses/{bonus_id}", response_model=UserBonus)
async def get_bonus(
    bonus_id: str,
    user_id: Optional[str] = None,
    engine: BonusEngine = Depends(get_bonus_engine),
):
    """Get one bonus"""
    try:
        return await engine.get_bonus(bonus_id, user_id)
    except BonusServiceError as e:
        raise _to_http_error(e)


@app.get("/api/v1/bonuses/{bonus_id}/transactions", response_model=BonusTransactionListResponse)
async def get_bonus_transactions(
    bonus_id: str,
    user_id: Optional[str] = None,
    engine: BonusEngine = Depends(get_bonus_engine),
):
    """Turnover contributions recorded against a bonus, oldest first"""
    try:
        transactions = await engine.get_bonus_transactions(bonus_id, user_id)
        return BonusTransactionListResponse(bonus_id=bonus_id, transactions=transactions, total=len(transactions))
    except BonusServiceError as e:
        raise _to_http_error(e)


@app.post("/api/v1/bonuses/{bonus_id}/convert", response_model=UserBonus)
async def convert_bonus(
    bonus_id: str,
    request: BonusActionRequest,
    engine: BonusEngine = Depends(get_bonus_engine),
):
    """Convert a bonus whose requirements are met"""
    try:
        return await engine.convert(bonus_id, request.user_id)
    except BonusServiceError as e:
        raise _to_http_error(e)
    except Exception as e:
        logger.error(f"Error converting bonus {bonus_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


@app.post("/api/v1/bonuses/{bonus_id}/forfeit", response_model=UserBonus)
async def forfeit_bonus(
    bonus_id: str,
    request: ForfeitBonusRequest,
    engine: BonusEngine = Depends(get_bonus_engine),
):
    """Forfeit a running bonus"""
    try:
        return await engine.forfeit(bonus_id, request.user_id, reason=request.reason)
    except BonusServiceError as e:
        raise _to_http_error(e)
    except Exception as e:
        logger.error(f"Error forfeiting bonus {bonus_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


@app.post("/api/v1/bonuses/{bonus_id}/cancel", response_model=UserBonus)
async def cancel_bonus(
    bonus_id: str,
    request: BonusActionRequest,
    engine: BonusEngine = Depends(get_bonus_engine),
):
    """Cancel an unused bonus"""
    try:
        return await engine.cancel(bonus_id, request.user_id)
    except BonusServiceError as e:
        raise _to_http_error(e)
    except Exception as e:
        logger.error(f"Error cancelling bonus {bonus_id}: {e}")
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "microservices.bonus_service.main:app",
        host="0.0.0.0",
        port=SERVICE_PORT,
        reload=config.debug,
        log_level=config.log_level.lower(),
    )
