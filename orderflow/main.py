"""
FastAPI Application Entry Point

Order Lifecycle & Real-Time Notification Engine.

Endpoints:
    - POST   /api/orders: Create order
    - GET    /api/orders: List most recent orders
    - GET    /api/orders/{id}: Get one order
    - PATCH  /api/orders/{id}/status: Staff status change
    - GET    /api/dashboard-data: Aggregated dashboard statistics
    - POST   /api/dashboard/sessions: Open a dashboard feed session
    - GET    /api/dashboard/sessions/{sid}/feed: Poll the feed
    - POST   /api/dashboard/sessions/{sid}/notifications/...: Read state
    - GET    /health: System health check

Author: Khalil Bannouri
Version: 1.0.0
"""

import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

import redis
from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

from orderflow.core.config import get_settings, setup_logging
from orderflow.core.exceptions import OrderEngineError
from orderflow.database import async_session_maker, engine, get_db, init_db
from orderflow.schemas import (
    DashboardSessionResponse,
    DashboardStatsResponse,
    ErrorResponse,
    FeedResponse,
    HealthResponse,
    NewOrderEventResponse,
    NotificationListResponse,
    NotificationResponse,
    OpenNotificationResponse,
    OrderCreate,
    OrderCreateResponse,
    OrderListResponse,
    OrderResponse,
    StatusChangeEventResponse,
    StatusUpdate,
)
from orderflow.services.cart import MenuSelection
from orderflow.services.dashboard import DashboardSession, SessionRegistry
from orderflow.services.feed import OrderSnapshot, summarize_orders
from orderflow.services.lifecycle import OrderLifecycleManager
from orderflow.services.notifications import get_alert_sink
from orderflow.services.order_store import OrderStore
from orderflow.tasks import queue_order_event

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


def _log_new_order(session_id: str, order_id: int) -> None:
    logger.info(f"Dashboard {session_id[:8]}: new order #{order_id}")


def build_services(session_maker=async_session_maker) -> tuple[OrderLifecycleManager, SessionRegistry]:
    """Wire the store, lifecycle manager and dashboard session registry."""
    manager = OrderLifecycleManager(
        OrderStore(session_maker),
        minimum_order_amount=settings.minimum_order_amount,
        on_event=queue_order_event,
    )
    registry = SessionRegistry(
        sink=get_alert_sink(),
        window=settings.order_list_limit,
        capacity=settings.notification_capacity,
        on_new_order=_log_new_order,
        session_ttl=settings.dashboard_session_ttl,
    )
    return manager, registry


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Minimum order: {settings.minimum_order_amount}")
    logger.info("=" * 60)

    await init_db()
    logger.info("✅ Database initialized")

    app.state.manager, app.state.registry = build_services()
    logger.info(f"✅ Alert Sink: {app.state.registry.sink.provider_name}")

    logger.info("=" * 60)
    logger.info("✅ Application ready!")
    logger.info("=" * 60)

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await engine.dispose()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Order lifecycle and real-time notification engine: order creation, "
        "staff status changes and live dashboard feeds."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_manager(request: Request) -> OrderLifecycleManager:
    return request.app.state.manager


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


async def take_snapshot(manager: OrderLifecycleManager) -> list[OrderSnapshot]:
    orders = await manager.list_recent(settings.order_list_limit)
    return [OrderSnapshot.from_order(order) for order in orders]


def notification_list(session: DashboardSession) -> list[NotificationResponse]:
    return [NotificationResponse.model_validate(r) for r in session.center.records()]


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"🍽️ Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    db: AsyncSession = Depends(get_db)
) -> HealthResponse:
    """Verify all system components are operational."""

    db_status = "healthy"
    try:
        await db.execute(select(func.now()))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    redis_status = "healthy"
    try:
        r = redis.Redis.from_url(settings.redis_url, socket_timeout=2)
        r.ping()
        r.close()
    except Exception as e:
        redis_status = f"unhealthy: {str(e)}"
        logger.error(f"Redis health check failed: {e}")

    sink_status = "healthy" if get_alert_sink().health_check() else "unhealthy"

    overall = "operational" if all(
        s == "healthy" for s in [db_status, redis_status, sink_status]
    ) else "degraded"

    return HealthResponse(
        status=overall,
        database=db_status,
        redis=redis_status,
        alert_sink=sink_status,
        timestamp=datetime.now(),
    )


# =============================================================================
# ORDER API ENDPOINTS
# =============================================================================

@app.post(
    "/api/orders",
    response_model=OrderCreateResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    tags=["Orders"],
    summary="Create Order",
)
async def create_order(
    order_data: OrderCreate,
    manager: OrderLifecycleManager = Depends(get_manager),
) -> OrderCreateResponse:
    """
    Create a new pending order.

    The submitted total must equal the item total and reach the minimum
    order amount. Resubmitting with the same idempotency_key returns the
    order created by the first submission.
    """
    logger.info(f"Creating order for: {order_data.customer_name}")

    order_id = await manager.create(
        customer_name=order_data.customer_name,
        customer_phone=order_data.customer_phone,
        customer_email=order_data.customer_email,
        customer_location=order_data.customer_location,
        selections=[
            MenuSelection(
                menu_item_id=item.menu_item_id,
                menu_item_name=item.menu_item_name,
                unit_price=item.unit_price,
                quantity=item.quantity,
            )
            for item in order_data.items
        ],
        total_amount=order_data.total_amount,
        idempotency_key=order_data.idempotency_key,
    )
    order = await manager.get(order_id)

    return OrderCreateResponse(
        success=True,
        message="Order placed successfully! We'll contact you soon.",
        order_id=order.id,
        total_amount=order.total_amount,
        status=order.status.value,
    )


@app.get(
    "/api/orders",
    response_model=OrderListResponse,
    tags=["Orders"],
    summary="List Orders",
)
async def list_orders(
    limit: int = Query(settings.order_list_limit, ge=1, le=settings.order_list_limit),
    manager: OrderLifecycleManager = Depends(get_manager),
) -> OrderListResponse:
    """Most recent orders first."""
    orders = await manager.list_recent(limit)
    return OrderListResponse(
        total=len(orders),
        orders=[OrderResponse.model_validate(order) for order in orders],
    )


@app.get(
    "/api/orders/{order_id}",
    response_model=OrderResponse,
    responses={404: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def get_order(
    order_id: int,
    manager: OrderLifecycleManager = Depends(get_manager),
) -> OrderResponse:
    """Get a specific order by ID."""
    return OrderResponse.model_validate(await manager.get(order_id))


@app.patch(
    "/api/orders/{order_id}/status",
    response_model=OrderResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    tags=["Orders"],
    summary="Update Order Status",
)
async def update_order_status(
    order_id: int,
    update: StatusUpdate,
    manager: OrderLifecycleManager = Depends(get_manager),
) -> OrderResponse:
    """Move an order along pending → processing → completed, or cancel it."""
    order = await manager.transition(order_id, update.status)
    return OrderResponse.model_validate(order)


# =============================================================================
# DASHBOARD ENDPOINTS
# =============================================================================

@app.get(
    "/api/dashboard-data",
    tags=["Dashboard"],
)
async def dashboard_data(
    manager: OrderLifecycleManager = Depends(get_manager),
) -> dict[str, Any]:
    """Counts and revenue recomputed from the current order window."""
    orders = await manager.list_recent(settings.order_list_limit)
    stats = summarize_orders(OrderSnapshot.from_order(o) for o in orders)

    return {
        **stats.to_dict(),
        "minimum_order_amount": settings.minimum_order_amount,
        "environment": settings.env_mode.value,
        "recent_orders": [
            OrderResponse.model_validate(o).model_dump(mode="json") for o in orders
        ],
    }


@app.post(
    "/api/dashboard/sessions",
    response_model=DashboardSessionResponse,
    status_code=201,
    tags=["Dashboard"],
)
async def open_dashboard_session(
    manager: OrderLifecycleManager = Depends(get_manager),
    registry: SessionRegistry = Depends(get_registry),
) -> DashboardSessionResponse:
    """Open a feed session and record the current orders as its baseline."""
    session = registry.open()
    await session.poll(lambda: take_snapshot(manager))
    return DashboardSessionResponse(session_id=session.id)


@app.delete(
    "/api/dashboard/sessions/{session_id}",
    status_code=204,
    tags=["Dashboard"],
)
async def close_dashboard_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> None:
    registry.close(session_id)


@app.get(
    "/api/dashboard/sessions/{session_id}/feed",
    response_model=FeedResponse,
    responses={404: {"model": ErrorResponse}},
    tags=["Dashboard"],
)
async def poll_feed(
    session_id: str,
    manager: OrderLifecycleManager = Depends(get_manager),
    registry: SessionRegistry = Depends(get_registry),
) -> FeedResponse:
    """New orders and status changes since this session's previous poll."""
    session = registry.get(session_id)
    delta, snapshot = await session.poll(lambda: take_snapshot(manager))

    return FeedResponse(
        session_id=session.id,
        new_orders=[
            NewOrderEventResponse.model_validate(e, from_attributes=True)
            for e in delta.new_orders
        ],
        status_changes=[
            StatusChangeEventResponse.model_validate(e, from_attributes=True)
            for e in delta.status_changes
        ],
        notifications=notification_list(session),
        unread_count=session.center.unread_count(),
        stats=DashboardStatsResponse(**summarize_orders(snapshot).to_dict()),
    )


@app.get(
    "/api/dashboard/sessions/{session_id}/notifications",
    response_model=NotificationListResponse,
    tags=["Dashboard"],
)
async def list_notifications(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> NotificationListResponse:
    session = registry.get(session_id)
    return NotificationListResponse(
        notifications=notification_list(session),
        unread_count=session.center.unread_count(),
    )


@app.post(
    "/api/dashboard/sessions/{session_id}/notifications/read-all",
    response_model=NotificationListResponse,
    tags=["Dashboard"],
)
async def acknowledge_all_notifications(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> NotificationListResponse:
    session = registry.get(session_id)
    session.center.acknowledge_all()
    return NotificationListResponse(
        notifications=notification_list(session),
        unread_count=session.center.unread_count(),
    )


@app.post(
    "/api/dashboard/sessions/{session_id}/notifications/{notification_id}/read",
    response_model=NotificationListResponse,
    responses={404: {"model": ErrorResponse}},
    tags=["Dashboard"],
)
async def acknowledge_notification(
    session_id: str,
    notification_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> NotificationListResponse:
    session = registry.get(session_id)
    session.center.acknowledge(notification_id)
    return NotificationListResponse(
        notifications=notification_list(session),
        unread_count=session.center.unread_count(),
    )


@app.post(
    "/api/dashboard/sessions/{session_id}/notifications/{notification_id}/open",
    response_model=OpenNotificationResponse,
    responses={404: {"model": ErrorResponse}},
    tags=["Dashboard"],
)
async def open_notification(
    session_id: str,
    notification_id: str,
    registry: SessionRegistry = Depends(get_registry),
) -> OpenNotificationResponse:
    """Mark the notification read and return the order the dashboard should highlight."""
    session = registry.get(session_id)
    order_id = session.center.open(notification_id)
    return OpenNotificationResponse(notification_id=notification_id, order_id=order_id)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(OrderEngineError)
async def order_engine_exception_handler(request: Request, exc: OrderEngineError) -> JSONResponse:
    """Map engine error kinds to HTTP responses."""
    if exc.retryable:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.code}")

    return JSONResponse(
        status_code=exc.http_status,
        content=ErrorResponse(
            error=exc.code,
            detail=exc.message,
            context=exc.to_dict(),
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )
