"""HTTP routes exposed by the proxy."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from . import operations
from .constants import DEFAULT_TRANSACTION_LIMIT, DEFAULT_VAULT_PAGE_SIZE
from .contracts import ProxyResult
from .dispatch import Dispatcher
from .operations import (
    AccountOnboardingInput,
    DepositAddressInput,
    FeeEstimateInput,
    TransferInput,
    VaultCreateInput,
    WalletCreateInput,
)

health_router = APIRouter(tags=["health"])
vault_router = APIRouter(prefix="/vault", tags=["vault"])
transaction_router = APIRouter(prefix="/transactions", tags=["transactions"])
asset_router = APIRouter(tags=["assets"])
account_router = APIRouter(prefix="/accounts", tags=["accounts"])


def get_dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher


def respond(result: ProxyResult) -> JSONResponse:
    return JSONResponse(status_code=result.status_code, content=result.envelope())


@health_router.get("/health")
async def health(request: Request):
    dispatcher: Dispatcher = request.app.state.dispatcher
    return {
        "status": "OK",
        "environment": request.app.state.config.credentials.environment,
        "baseUrl": dispatcher.base_url,
        "transport": dispatcher.transport.name,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@vault_router.post("/create")
async def create_vault(
    data: VaultCreateInput, dispatcher: Dispatcher = Depends(get_dispatcher)
):
    return respond(await operations.create_vault(dispatcher, data))


@vault_router.get("/accounts")
async def list_vault_accounts(
    limit: int = Query(DEFAULT_VAULT_PAGE_SIZE, ge=1, le=500),
    before: Optional[str] = None,
    after: Optional[str] = None,
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    return respond(
        await operations.list_vault_accounts(dispatcher, limit=limit, before=before, after=after)
    )


@vault_router.get("/accounts/{vault_account_id}")
async def get_vault_account(
    vault_account_id: str, dispatcher: Dispatcher = Depends(get_dispatcher)
):
    return respond(await operations.get_vault_account(dispatcher, vault_account_id))


@vault_router.post("/{vault_account_id}/wallet")
async def create_wallet(
    vault_account_id: str,
    data: WalletCreateInput,
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    return respond(await operations.create_wallet(dispatcher, vault_account_id, data))


@vault_router.get("/{vault_account_id}/assets")
async def list_vault_assets(
    vault_account_id: str, dispatcher: Dispatcher = Depends(get_dispatcher)
):
    return respond(await operations.get_vault_account(dispatcher, vault_account_id))


@vault_router.get("/{vault_account_id}/assets/{asset_id}")
async def get_asset_balance(
    vault_account_id: str, asset_id: str, dispatcher: Dispatcher = Depends(get_dispatcher)
):
    return respond(await operations.get_asset_balance(dispatcher, vault_account_id, asset_id))


@vault_router.post("/{vault_account_id}/assets/{asset_id}/addresses")
async def create_deposit_address(
    vault_account_id: str,
    asset_id: str,
    data: Optional[DepositAddressInput] = None,
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    return respond(
        await operations.create_deposit_address(dispatcher, vault_account_id, asset_id, data)
    )


@vault_router.get("/{vault_account_id}/addresses")
async def list_deposit_addresses(
    vault_account_id: str, dispatcher: Dispatcher = Depends(get_dispatcher)
):
    listing = await operations.list_deposit_addresses(dispatcher, vault_account_id)
    return {"success": True, **listing.model_dump()}


@transaction_router.post("/create")
async def create_transaction(
    data: TransferInput, dispatcher: Dispatcher = Depends(get_dispatcher)
):
    return respond(await operations.create_transaction(dispatcher, data))


@transaction_router.post("/estimate-fee")
async def estimate_fee(
    data: FeeEstimateInput, dispatcher: Dispatcher = Depends(get_dispatcher)
):
    return respond(await operations.estimate_fee(dispatcher, data))


@transaction_router.get("/{transaction_id}")
async def get_transaction(
    transaction_id: str, dispatcher: Dispatcher = Depends(get_dispatcher)
):
    return respond(await operations.get_transaction(dispatcher, transaction_id))


@transaction_router.get("")
async def list_transactions(
    limit: int = Query(DEFAULT_TRANSACTION_LIMIT, ge=1, le=500),
    before: Optional[str] = None,
    after: Optional[str] = None,
    status: Optional[str] = None,
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    return respond(
        await operations.list_transactions(
            dispatcher, limit=limit, before=before, after=after, status=status
        )
    )


@asset_router.get("/assets")
async def list_supported_assets(dispatcher: Dispatcher = Depends(get_dispatcher)):
    return respond(await operations.list_supported_assets(dispatcher))


@account_router.post("/create", status_code=201)
async def onboard_account(
    data: AccountOnboardingInput, dispatcher: Dispatcher = Depends(get_dispatcher)
):
    onboarding = await operations.onboard_account(dispatcher, data)
    return JSONResponse(
        status_code=201, content={"success": True, **onboarding.model_dump(exclude_none=True)}
    )


@account_router.get("/{customer_ref_id}")
async def get_account(customer_ref_id: str, dispatcher: Dispatcher = Depends(get_dispatcher)):
    account = await operations.get_account_by_ref_id(dispatcher, customer_ref_id)
    return {"success": True, "account": account}


@account_router.get("/{customer_ref_id}/balance/{asset_id}")
async def get_account_balance(
    customer_ref_id: str, asset_id: str, dispatcher: Dispatcher = Depends(get_dispatcher)
):
    balance = await operations.get_account_balance_by_ref_id(dispatcher, customer_ref_id, asset_id)
    return {"success": True, **balance}
