"""
Messages API router - cached mailbox reads with sync and live fallback.
"""

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Path, Query, Response

from selfecho.api.payloads import APIError, MailboxMessage
from selfecho.container import ApplicationContainer
from selfecho.controllers.mailbox.mailbox_controller import MailboxController

UINT32_MAX = 2**32 - 1

router = APIRouter()


@router.get(
    "",
    response_model=list[MailboxMessage],
    responses={
        404: {"model": APIError, "description": "No IMAP account"},
        502: {"model": APIError, "description": "Mailbox unavailable"},
    },
    summary="List messages",
    description="Lists the newest messages of an account; the total is returned in X-Total-Count",
)
@inject
async def list_messages(
    response: Response,
    account_id: int | None = Query(None, alias="accountId", description="Defaults to the latest account"),
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    mailbox_controller: MailboxController = Depends(Provide[ApplicationContainer.controllers.mailbox_controller]),
) -> list[MailboxMessage]:
    result = await mailbox_controller.list_messages(account_id, limit=limit, offset=(page - 1) * limit)
    response.headers["X-Total-Count"] = str(result.total)
    return result.messages


@router.get(
    "/{uid}",
    response_model=MailboxMessage,
    responses={
        404: {"model": APIError, "description": "Account or message not found"},
        502: {"model": APIError, "description": "Mailbox unavailable"},
    },
    summary="Get a message",
    description="Gets one message by IMAP UID",
)
@inject
async def get_message(
    uid: int = Path(..., ge=1, le=UINT32_MAX),
    account_id: int | None = Query(None, alias="accountId", description="Defaults to the latest account"),
    mailbox_controller: MailboxController = Depends(Provide[ApplicationContainer.controllers.mailbox_controller]),
) -> MailboxMessage:
    return await mailbox_controller.get_message(account_id, uid)
