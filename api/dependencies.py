"""Dependency injection for API endpoints."""

import logging
from typing import Optional

from fastapi import Header

from config.engine import EngineConfig, get_engine_config
from execution.orders.errors import ForbiddenError
from execution.orders.lifecycle import OrderLifecycleManager, create_lifecycle_manager
from execution.orders.models import Caller, CallerRole
from execution.persistence.state_manager import StateManager

from api.config import get_config
from api.middleware.error_handler import APIError
from api.services.order_service import OrderService
from api.services.position_service import PositionService

logger = logging.getLogger(__name__)

# Global instances
_state_manager: StateManager | None = None
_lifecycle_manager: OrderLifecycleManager | None = None


def get_state_manager() -> StateManager:
    """Get or create the global StateManager instance.

    Returns:
        StateManager instance
    """
    global _state_manager
    if _state_manager is None:
        config = get_config()
        _state_manager = StateManager(database_url=config.database_url)
        logger.info("StateManager initialized")
    return _state_manager


def get_lifecycle_manager() -> OrderLifecycleManager:
    """Get or create the global OrderLifecycleManager.

    One instance per process: in-process scope locks only serialize
    callers that share the same coordinator.

    Returns:
        OrderLifecycleManager instance
    """
    global _lifecycle_manager
    if _lifecycle_manager is None:
        _lifecycle_manager = create_lifecycle_manager(get_state_manager(), get_engine_config())
        logger.info("OrderLifecycleManager initialized")
    return _lifecycle_manager


def close_state_manager() -> None:
    """Close the global StateManager instance."""
    global _state_manager, _lifecycle_manager
    _lifecycle_manager = None
    if _state_manager is not None:
        _state_manager.close()
        _state_manager = None
        logger.info("StateManager closed")


def get_caller(
    x_user_id: Optional[str] = Header(None, description="Authenticated user ID"),
    x_organization_id: Optional[str] = Header(None, description="Caller's organization"),
    x_user_role: Optional[str] = Header(None, description="CLIENT, TRADER, BACKOFFICE or ADMIN"),
) -> Caller:
    """Build the caller identity from upstream authentication headers.

    A missing role header falls back to ``APIConfig.default_role``.

    Returns:
        Caller
    """
    if not x_user_id:
        raise APIError("Authentication required", status_code=401)

    role_name = x_user_role or get_config().default_role
    try:
        role = CallerRole(role_name.upper())
    except ValueError:
        raise ForbiddenError(f"Unknown role: {role_name}")

    return Caller(user_id=x_user_id, organization_id=x_organization_id or None, role=role)


# Service dependencies

def get_order_service() -> OrderService:
    """Get OrderService instance.

    Returns:
        OrderService
    """
    engine_config: EngineConfig = get_engine_config()
    return OrderService(
        get_lifecycle_manager(),
        get_state_manager(),
        retry_policy=engine_config.retry,
    )


def get_position_service() -> PositionService:
    """Get PositionService instance.

    Returns:
        PositionService
    """
    return PositionService(get_state_manager())
