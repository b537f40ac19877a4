"""Proxied vault and transaction operations.

Each operation validates its input, shapes the remote request and hands it to
the :class:`~vaultgate.dispatch.Dispatcher`. Validation failures raise
:class:`~vaultgate.errors.ValidationError` before anything is signed.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Tuple, Union
from urllib.parse import quote, urlencode

from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_ONBOARDING_ASSETS,
    DEFAULT_TRANSACTION_LIMIT,
    DEFAULT_VAULT_PAGE_SIZE,
    REF_ID_LOOKUP_PAGE_SIZE,
)
from .contracts import ProxyResult
from .dispatch import Dispatcher
from .errors import ConflictError, InvalidResponseError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

INVALID_DESTINATION = (
    'Invalid destination. Provide either (destinationType: "vault", destinationVaultId) '
    'or (destinationType: "address", destinationAddress)'
)

Identifier = Union[str, int]


class VaultCreateInput(BaseModel):
    name: Optional[str] = None
    autoFuel: bool = True
    hiddenOnUI: bool = False
    customerRefId: Optional[str] = None


class WalletCreateInput(BaseModel):
    assetId: Optional[str] = None


class DepositAddressInput(BaseModel):
    description: Optional[str] = None
    customerRefId: Optional[str] = None


class TransferInput(BaseModel):
    """Client-side description of a transfer between peers."""

    assetId: Optional[str] = None
    amount: Optional[Union[str, int, float]] = None
    sourceVaultId: Optional[Identifier] = None
    destinationType: Optional[str] = None
    destinationAddress: Optional[str] = None
    destinationVaultId: Optional[Identifier] = None
    note: Optional[str] = None


class FeeEstimateInput(TransferInput):
    allowBaseAssetAddress: bool = False


class AccountOnboardingInput(BaseModel):
    userId: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    assets: Optional[List[str]] = None


class WalletProvisioning(BaseModel):
    assetId: str
    status: Literal["created", "failed"]
    id: Optional[str] = None
    address: Optional[str] = None
    balance: Optional[str] = None
    error: Optional[str] = None


class DepositProvisioning(BaseModel):
    assetId: str
    status: Literal["created", "failed"]
    address: Optional[str] = None
    tag: Optional[str] = None
    error: Optional[str] = None


class AccountOnboarding(BaseModel):
    """A user's new vault with the per-asset wallet and address outcomes."""

    vaultAccountId: str
    userId: str
    name: str
    email: str
    assets: List[WalletProvisioning] = Field(default_factory=list)
    depositAddresses: List[DepositProvisioning] = Field(default_factory=list)
    createdAt: str


class AddressListing(BaseModel):
    """Deposit addresses of every asset in a vault, with per-asset failures."""

    vaultAccountId: str
    addresses: Dict[str, Any] = Field(default_factory=dict)
    failures: Dict[str, str] = Field(default_factory=dict)


def _segment(value: Identifier) -> str:
    """Percent-encode a client-supplied path segment."""
    return quote(str(value), safe="")


def _with_query(path: str, params: Dict[str, Any]) -> str:
    query = urlencode({k: v for k, v in params.items() if v not in (None, "")})
    return f"{path}?{query}" if query else path


def _text(value: Any) -> Optional[str]:
    return str(value) if value not in (None, "") else None


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def vault_path(vault_account_id: Identifier, *parts: Identifier) -> str:
    path = f"/v1/vault/accounts/{_segment(vault_account_id)}"
    for part in parts:
        path += f"/{_segment(part)}"
    return path


def build_destination(data: TransferInput) -> Dict[str, Any]:
    if data.destinationType == "vault" and data.destinationVaultId:
        return {"type": "VAULT_ACCOUNT", "id": str(data.destinationVaultId)}
    if data.destinationType == "address" and data.destinationAddress:
        return {
            "type": "ONE_TIME_ADDRESS",
            "oneTimeAddress": {"address": data.destinationAddress},
        }
    raise ValidationError(INVALID_DESTINATION)


def _require_transfer_fields(data: TransferInput) -> None:
    if not data.assetId or not data.amount or not data.sourceVaultId:
        raise ValidationError("assetId, amount, and sourceVaultId are required")


def build_transaction_payload(
    data: TransferInput, timestamp: Optional[str] = None
) -> Dict[str, Any]:
    """Remote body for ``POST /v1/transactions``."""
    _require_transfer_fields(data)
    destination = build_destination(data)
    return {
        "assetId": data.assetId,
        "amount": data.amount,
        "source": {"type": "VAULT_ACCOUNT", "id": str(data.sourceVaultId)},
        "destination": destination,
        "note": data.note or f"Transaction created at {timestamp or _utc_timestamp()}",
    }


def build_fee_estimate_payload(data: FeeEstimateInput) -> Dict[str, Any]:
    """Remote body for ``POST /v1/transactions/estimate_fee``."""
    _require_transfer_fields(data)
    destination = build_destination(data)
    return {
        "assetId": data.assetId,
        "amount": data.amount,
        "operation": "TRANSFER",
        "source": {"type": "VAULT_ACCOUNT", "id": str(data.sourceVaultId)},
        "destination": destination,
        "extraParameters": {"allowBaseAssetAddress": data.allowBaseAssetAddress},
    }


def _vault_body(data: VaultCreateInput) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "name": data.name,
        "autoFuel": data.autoFuel,
        "hiddenOnUI": data.hiddenOnUI,
    }
    if data.customerRefId:
        body["customerRefId"] = data.customerRefId
    return body


async def create_vault(dispatcher: Dispatcher, data: VaultCreateInput) -> ProxyResult:
    if not data.name:
        raise ValidationError("Name is required")
    return await dispatcher.dispatch("POST", "/v1/vault/accounts", _vault_body(data))


async def list_vault_accounts(
    dispatcher: Dispatcher,
    limit: int = DEFAULT_VAULT_PAGE_SIZE,
    before: Optional[str] = None,
    after: Optional[str] = None,
) -> ProxyResult:
    path = _with_query(
        "/v1/vault/accounts_paged", {"limit": limit, "before": before, "after": after}
    )
    return await dispatcher.dispatch("GET", path)


async def get_vault_account(dispatcher: Dispatcher, vault_account_id: str) -> ProxyResult:
    return await dispatcher.dispatch("GET", vault_path(vault_account_id))


async def create_wallet(
    dispatcher: Dispatcher, vault_account_id: str, data: WalletCreateInput
) -> ProxyResult:
    if not data.assetId:
        raise ValidationError("assetId is required")
    return await dispatcher.dispatch("POST", vault_path(vault_account_id, data.assetId))


async def get_asset_balance(
    dispatcher: Dispatcher, vault_account_id: str, asset_id: str
) -> ProxyResult:
    return await dispatcher.dispatch("GET", vault_path(vault_account_id, asset_id))


async def create_deposit_address(
    dispatcher: Dispatcher,
    vault_account_id: str,
    asset_id: str,
    data: Optional[DepositAddressInput] = None,
) -> ProxyResult:
    body = data.model_dump(exclude_none=True) if data else {}
    return await dispatcher.dispatch(
        "POST", vault_path(vault_account_id, asset_id, "addresses"), body
    )


async def list_deposit_addresses(
    dispatcher: Dispatcher, vault_account_id: str
) -> AddressListing:
    """Collect the deposit addresses of every asset held in a vault.

    Per-asset lookups run concurrently and a failing asset is reported in
    ``failures`` without affecting the others.

    Raises:
        NotFoundError: If the vault holds no assets.
        InvalidResponseError: If the vault payload has no asset list.
        ProxyError: If the vault itself cannot be fetched.
    """
    account = await dispatcher.request("GET", vault_path(vault_account_id))
    assets = account.get("assets") if isinstance(account, dict) else None
    if not assets:
        raise NotFoundError(f"No assets found for vault {vault_account_id}")

    if not isinstance(assets, list):
        raise InvalidResponseError(f"Unexpected assets payload for vault {vault_account_id}")

    asset_ids: List[str] = [
        str(asset["id"]) for asset in assets if isinstance(asset, dict) and asset.get("id")
    ]
    if len(asset_ids) < len(assets):
        logger.warning(
            f"Skipped {len(assets) - len(asset_ids)} malformed asset entries in vault {vault_account_id}"
        )
    if not asset_ids:
        raise NotFoundError(f"No assets found for vault {vault_account_id}")

    results = await asyncio.gather(
        *(
            dispatcher.dispatch("GET", vault_path(vault_account_id, asset_id, "addresses"))
            for asset_id in asset_ids
        )
    )

    listing = AddressListing(vaultAccountId=vault_account_id)
    for asset_id, result in zip(asset_ids, results):
        if result.success:
            listing.addresses[asset_id] = result.data
        else:
            logger.warning(
                f"Address lookup failed for vault {vault_account_id} asset {asset_id}: {result.error}"
            )
            listing.failures[asset_id] = result.error or "Unknown error"
    return listing


async def find_vault_by_ref_id(
    dispatcher: Dispatcher, customer_ref_id: str
) -> Optional[Dict[str, Any]]:
    """Walk the paged vault listing for the account tagged ``customer_ref_id``."""
    after: Optional[str] = None
    while True:
        page = await dispatcher.request(
            "GET",
            _with_query(
                "/v1/vault/accounts_paged", {"limit": REF_ID_LOOKUP_PAGE_SIZE, "after": after}
            ),
        )
        if not isinstance(page, dict):
            raise InvalidResponseError("Unexpected vault listing payload")

        for account in page.get("accounts") or []:
            if isinstance(account, dict) and account.get("customerRefId") == customer_ref_id:
                return account

        paging = page.get("paging")
        next_after = paging.get("after") if isinstance(paging, dict) else None
        if not next_after or next_after == after:
            return None
        after = next_after


def _account_id(account: Dict[str, Any]) -> str:
    account_id = _text(account.get("id"))
    if account_id is None:
        raise InvalidResponseError("Vault account payload carried no id")
    return account_id


async def get_account_by_ref_id(dispatcher: Dispatcher, customer_ref_id: str) -> Dict[str, Any]:
    account = await find_vault_by_ref_id(dispatcher, customer_ref_id)
    if account is None:
        raise NotFoundError("User account not found")
    return account


async def get_account_balance_by_ref_id(
    dispatcher: Dispatcher, customer_ref_id: str, asset_id: str
) -> Dict[str, Any]:
    """Balance of one asset in the vault tagged ``customer_ref_id``, ``"0"`` if absent."""
    account = await get_account_by_ref_id(dispatcher, customer_ref_id)
    asset_id = asset_id.upper()
    vault = await dispatcher.request("GET", vault_path(_account_id(account)))

    balance: Any = "0"
    assets = vault.get("assets") if isinstance(vault, dict) else None
    for asset in assets if isinstance(assets, list) else []:
        if isinstance(asset, dict) and asset.get("id") == asset_id:
            balance = asset.get("balance", "0")
            break
    return {"userId": customer_ref_id, "assetId": asset_id, "balance": balance}


async def _provision_asset(
    dispatcher: Dispatcher, vault_account_id: str, asset_id: str
) -> Tuple[WalletProvisioning, DepositProvisioning]:
    created = await create_wallet(
        dispatcher, vault_account_id, WalletCreateInput(assetId=asset_id)
    )
    if created.success:
        data = created.data if isinstance(created.data, dict) else {}
        wallet = WalletProvisioning(
            assetId=asset_id,
            status="created",
            id=_text(data.get("id")),
            address=_text(data.get("address")),
            balance=_text(data.get("balance")) or "0",
        )
    else:
        logger.warning(
            f"Wallet creation failed for vault {vault_account_id} asset {asset_id}: {created.error}"
        )
        wallet = WalletProvisioning(assetId=asset_id, status="failed", error=created.error)

    generated = await create_deposit_address(dispatcher, vault_account_id, asset_id)
    if generated.success:
        data = generated.data if isinstance(generated.data, dict) else {}
        address = DepositProvisioning(
            assetId=asset_id,
            status="created",
            address=_text(data.get("address")),
            tag=_text(data.get("tag")),
        )
    else:
        logger.warning(
            f"Address generation failed for vault {vault_account_id} asset {asset_id}: {generated.error}"
        )
        address = DepositProvisioning(assetId=asset_id, status="failed", error=generated.error)
    return wallet, address


async def onboard_account(
    dispatcher: Dispatcher, data: AccountOnboardingInput
) -> AccountOnboarding:
    """Open a vault for a user and provision a wallet and deposit address per asset.

    The vault is tagged with the user id as ``customerRefId``; a user that
    already owns a tagged vault is refused. Assets are provisioned
    concurrently and a failed wallet or address is recorded on that asset
    without affecting the others.

    Raises:
        ValidationError: If ``userId``, ``email`` or ``name`` is missing.
        ConflictError: If a vault already carries the user id.
        ProxyError: If the lookup or the vault creation fails.
    """
    if not data.userId or not data.email or not data.name:
        raise ValidationError("Missing required fields: userId, email, name")

    requested = DEFAULT_ONBOARDING_ASSETS if data.assets is None else data.assets
    asset_ids = list(dict.fromkeys(a.strip() for a in requested if a and a.strip()))
    if not asset_ids:
        raise ValidationError("assets must name at least one asset")

    existing = await find_vault_by_ref_id(dispatcher, data.userId)
    if existing is not None:
        raise ConflictError(
            "User account already exists", vault_account_id=_text(existing.get("id"))
        )

    vault = await dispatcher.request(
        "POST",
        "/v1/vault/accounts",
        _vault_body(
            VaultCreateInput(
                name=f"{data.name} - {data.userId}", autoFuel=False, customerRefId=data.userId
            )
        ),
    )
    vault_account_id = _account_id(vault if isinstance(vault, dict) else {})
    logger.info(f"Created vault {vault_account_id} for user {data.userId}")

    provisioned = await asyncio.gather(
        *(_provision_asset(dispatcher, vault_account_id, asset_id) for asset_id in asset_ids)
    )
    return AccountOnboarding(
        vaultAccountId=vault_account_id,
        userId=data.userId,
        name=data.name,
        email=data.email,
        assets=[wallet for wallet, _ in provisioned],
        depositAddresses=[address for _, address in provisioned],
        createdAt=_utc_timestamp(),
    )


async def create_transaction(dispatcher: Dispatcher, data: TransferInput) -> ProxyResult:
    payload = build_transaction_payload(data)
    return await dispatcher.dispatch("POST", "/v1/transactions", payload)


async def estimate_fee(dispatcher: Dispatcher, data: FeeEstimateInput) -> ProxyResult:
    payload = build_fee_estimate_payload(data)
    return await dispatcher.dispatch("POST", "/v1/transactions/estimate_fee", payload)


async def get_transaction(dispatcher: Dispatcher, transaction_id: str) -> ProxyResult:
    return await dispatcher.dispatch("GET", f"/v1/transactions/{_segment(transaction_id)}")


async def list_transactions(
    dispatcher: Dispatcher,
    limit: int = DEFAULT_TRANSACTION_LIMIT,
    before: Optional[str] = None,
    after: Optional[str] = None,
    status: Optional[str] = None,
) -> ProxyResult:
    path = _with_query(
        "/v1/transactions",
        {"limit": limit, "before": before, "after": after, "status": status},
    )
    return await dispatcher.dispatch("GET", path)


async def list_supported_assets(dispatcher: Dispatcher) -> ProxyResult:
    return await dispatcher.dispatch("GET", "/v1/supported_assets")
