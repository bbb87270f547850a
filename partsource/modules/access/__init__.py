"""Access module: JWT identity and role gates."""

from partsource.modules.access.auth import (
    AuthenticatedUser,
    get_current_user,
    require_bom_editor,
    require_rfq_manager,
)

__all__ = [
    "AuthenticatedUser",
    "get_current_user",
    "require_bom_editor",
    "require_rfq_manager",
]
