"""
Accounts API router - IMAP account registration and credential updates.
"""

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Path, Query, Response, status

from selfecho.api.payloads import (
    AccountListItem,
    APIError,
    CreateAccountRequest,
    CreateAccountResponse,
    UpdateCredentialsRequest,
)
from selfecho.container import ApplicationContainer
from selfecho.controllers.mailbox.account_controller import AccountController

router = APIRouter()


@router.get("", response_model=list[AccountListItem], summary="List IMAP accounts")
@inject
async def list_accounts(
    response: Response,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    account_controller: AccountController = Depends(Provide[ApplicationContainer.controllers.account_controller]),
) -> list[AccountListItem]:
    accounts, total = await account_controller.list_accounts(page=page, limit=limit)
    response.headers["X-Total-Count"] = str(total)
    return accounts


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=CreateAccountResponse,
    responses={400: {"model": APIError, "description": "Missing host, username or password"}},
    summary="Register an IMAP account",
)
@inject
async def create_account(
    payload: CreateAccountRequest,
    account_controller: AccountController = Depends(Provide[ApplicationContainer.controllers.account_controller]),
) -> CreateAccountResponse:
    account_id = await account_controller.register_account(
        host=payload.host,
        port=payload.port,
        username=payload.username,
        password=payload.password,
        tls_mode=payload.tls_mode,
    )
    return CreateAccountResponse(id=account_id)


@router.put(
    "/{account_id}/credentials",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        400: {"model": APIError, "description": "Missing password"},
        404: {"model": APIError, "description": "Account not found"},
    },
    summary="Replace the stored password of an account",
)
@inject
async def update_credentials(
    payload: UpdateCredentialsRequest,
    account_id: int = Path(..., ge=1),
    account_controller: AccountController = Depends(Provide[ApplicationContainer.controllers.account_controller]),
) -> Response:
    await account_controller.update_credentials(account_id, payload.password)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
