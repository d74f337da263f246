"""
IMAP API router - Parent router for mailbox account and message endpoints.
"""

from fastapi import APIRouter

from .accounts import router as accounts_router
from .messages import router as messages_router

router = APIRouter()

router.include_router(accounts_router, prefix="/accounts", tags=["accounts"])
router.include_router(messages_router, prefix="/messages", tags=["messages"])
