"""Admin endpoint protection"""

import logging
import secrets
from typing import Optional

from fastapi import Header, HTTPException

from ..config import ADMIN_API_KEY

logger = logging.getLogger(__name__)


def require_admin_key(x_admin_key: Optional[str] = Header(default=None)) -> None:
    """Reject requests without the configured X-Admin-Key header"""
    if not ADMIN_API_KEY:
        logger.warning("⚠️ Admin endpoint called but ADMIN_API_KEY is not configured")
        raise HTTPException(status_code=403, detail="Admin access is not configured")

    if not x_admin_key or not secrets.compare_digest(x_admin_key, ADMIN_API_KEY):
        logger.warning("🚫 Admin endpoint called with a missing or invalid key")
        raise HTTPException(status_code=403, detail="Invalid admin key")
