"""Core application utilities."""

from .config import Settings, get_settings
from .database import (
    async_session_factory,
    close_db,
    engine,
    get_session,
    init_db,
    set_tenant_context,
)
from .dependencies import (
    CurrentUser,
    CurrentUserDep,
    OrgContextDep,
    SessionDep,
    get_current_user,
    require_org_context,
)
from .security import create_access_token, decode_token

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Database
    "engine",
    "async_session_factory",
    "get_session",
    "init_db",
    "close_db",
    "set_tenant_context",
    # Dependencies
    "CurrentUser",
    "get_current_user",
    "require_org_context",
    "CurrentUserDep",
    "OrgContextDep",
    "SessionDep",
    # Security
    "create_access_token",
    "decode_token",
]
