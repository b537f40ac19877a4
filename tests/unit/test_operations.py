"""Request shaping and address aggregation tests."""

import json

import pytest

from vaultgate import operations
from vaultgate.constants import SANDBOX_BASE_URL
from vaultgate.contracts import TransportResponse
from vaultgate.dispatch import Dispatcher
from vaultgate.errors import (
    ConflictError,
    InvalidResponseError,
    NotFoundError,
    TransportError,
    ValidationError,
)
from vaultgate.operations import (
    AccountOnboardingInput,
    FeeEstimateInput,
    TransferInput,
    VaultCreateInput,
)
from vaultgate.transports import InMemoryTransport


def test_transaction_payload_to_one_time_address():
    data = TransferInput(
        assetId="ETH_TEST5",
        amount="0.001",
        sourceVaultId="20",
        destinationType="address",
        destinationAddress="0x3c905aC275240085FD295E8c493BF9A8aFE4cE75",
    )
    payload = operations.build_transaction_payload(data, timestamp="2025-01-01T00:00:00.000Z")

    assert payload == {
        "assetId": "ETH_TEST5",
        "amount": "0.001",
        "source": {"type": "VAULT_ACCOUNT", "id": "20"},
        "destination": {
            "type": "ONE_TIME_ADDRESS",
            "oneTimeAddress": {"address": "0x3c905aC275240085FD295E8c493BF9A8aFE4cE75"},
        },
        "note": "Transaction created at 2025-01-01T00:00:00.000Z",
    }


def test_transaction_payload_to_vault_keeps_note():
    data = TransferInput(
        assetId="BTC_TEST",
        amount=0.5,
        sourceVaultId=20,
        destinationType="vault",
        destinationVaultId=21,
        note="rebalance",
    )
    payload = operations.build_transaction_payload(data)

    assert payload["source"] == {"type": "VAULT_ACCOUNT", "id": "20"}
    assert payload["destination"] == {"type": "VAULT_ACCOUNT", "id": "21"}
    assert payload["note"] == "rebalance"


def test_default_note_has_timestamp():
    data = TransferInput(
        assetId="BTC_TEST", amount="1", sourceVaultId="1",
        destinationType="vault", destinationVaultId="2",
    )
    note = operations.build_transaction_payload(data)["note"]
    assert note.startswith("Transaction created at ")
    assert note.endswith("Z")


@pytest.mark.parametrize(
    "destination",
    [
        {},
        {"destinationType": "vault"},
        {"destinationType": "vault", "destinationAddress": "0xabc"},
        {"destinationType": "address", "destinationVaultId": "3"},
        {"destinationType": "exchange", "destinationVaultId": "3"},
    ],
)
def test_invalid_destination(destination):
    data = TransferInput(assetId="ETH_TEST5", amount="1", sourceVaultId="20", **destination)
    with pytest.raises(ValidationError, match="Invalid destination"):
        operations.build_transaction_payload(data)


def test_missing_transfer_fields():
    with pytest.raises(ValidationError, match="assetId, amount, and sourceVaultId are required"):
        operations.build_transaction_payload(TransferInput(assetId="ETH_TEST5"))


def test_fee_estimate_payload():
    data = FeeEstimateInput(
        assetId="ETH_TEST5", amount="0.01", sourceVaultId="20",
        destinationType="vault", destinationVaultId="21",
    )
    payload = operations.build_fee_estimate_payload(data)

    assert payload["operation"] == "TRANSFER"
    assert payload["extraParameters"] == {"allowBaseAssetAddress": False}
    assert "note" not in payload


def test_vault_path_encodes_segments():
    assert operations.vault_path("20") == "/v1/vault/accounts/20"
    assert operations.vault_path("20", "BTC_TEST", "addresses") == (
        "/v1/vault/accounts/20/BTC_TEST/addresses"
    )
    assert operations.vault_path("../admin") == "/v1/vault/accounts/..%2Fadmin"


@pytest.mark.asyncio
async def test_create_vault_requires_name(dispatcher, transport, minter):
    with pytest.raises(ValidationError, match="Name is required"):
        await operations.create_vault(dispatcher, VaultCreateInput())
    assert minter.calls == []
    assert transport.requests == []


@pytest.mark.asyncio
async def test_list_transactions_builds_query(dispatcher, transport, minter):
    await operations.list_transactions(dispatcher, limit=5, status="COMPLETED")

    assert transport.requests[0].path == "/v1/transactions?limit=5&status=COMPLETED"
    assert minter.calls[0].claims.uri == "/v1/transactions?limit=5&status=COMPLETED"


@pytest.mark.asyncio
async def test_address_listing_reports_partial_failures(minter):
    def handler(request):
        if request.path == "/v1/vault/accounts/20":
            return TransportResponse(
                status_code=200,
                text='{"id": "20", "assets": [{"id": "BTC_TEST"}, {"id": "ETH_TEST5"}, {"id": "SOL_TEST"}]}',
            )
        if "ETH_TEST5" in request.path:
            raise TransportError("socket hang up")
        if "SOL_TEST" in request.path:
            return TransportResponse(status_code=400, text='{"message": "Asset not enabled", "code": 1}')
        return TransportResponse(status_code=200, text='[{"address": "tb1qexample"}]')

    transport = InMemoryTransport(handler)
    dispatcher = Dispatcher(transport=transport, minter=minter, base_url=SANDBOX_BASE_URL)

    listing = await operations.list_deposit_addresses(dispatcher, "20")

    assert listing.vaultAccountId == "20"
    assert listing.addresses == {"BTC_TEST": [{"address": "tb1qexample"}]}
    assert listing.failures == {
        "ETH_TEST5": "socket hang up",
        "SOL_TEST": "Asset not enabled",
    }
    assert len(transport.requests) == 4


@pytest.mark.asyncio
async def test_address_listing_without_assets(dispatcher, transport):
    transport.queue_json('{"id": "20", "assets": []}')
    with pytest.raises(NotFoundError, match="No assets found for vault 20"):
        await operations.list_deposit_addresses(dispatcher, "20")
    assert len(transport.requests) == 1


@pytest.mark.asyncio
async def test_address_listing_skips_malformed_asset_entries(dispatcher, transport):
    transport.queue_json('{"id": "20", "assets": ["BTC", null, {"balance": "1"}, {"id": "ETH_TEST5"}]}')
    transport.queue_json('[{"address": "0xabc"}]')

    listing = await operations.list_deposit_addresses(dispatcher, "20")

    assert listing.addresses == {"ETH_TEST5": [{"address": "0xabc"}]}
    assert [r.path for r in transport.requests] == [
        "/v1/vault/accounts/20",
        "/v1/vault/accounts/20/ETH_TEST5/addresses",
    ]


@pytest.mark.asyncio
async def test_address_listing_rejects_non_list_assets(dispatcher, transport):
    transport.queue_json('{"id": "20", "assets": "BTC,ETH"}')
    with pytest.raises(InvalidResponseError):
        await operations.list_deposit_addresses(dispatcher, "20")


@pytest.mark.asyncio
async def test_address_listing_with_only_malformed_assets(dispatcher, transport):
    transport.queue_json('{"id": "20", "assets": [1, 2]}')
    with pytest.raises(NotFoundError):
        await operations.list_deposit_addresses(dispatcher, "20")
    assert len(transport.requests) == 1


def onboarding_api(accounts=(), wallet_errors=None, address_errors=None):
    """Handler answering the vault endpoints touched while onboarding a user."""
    wallet_errors = wallet_errors or {}
    address_errors = address_errors or {}

    def handler(request):
        path = request.path
        if path.startswith("/v1/vault/accounts_paged"):
            page = {"accounts": list(accounts), "paging": {}}
            return TransportResponse(status_code=200, text=json.dumps(page))
        if path == "/v1/vault/accounts":
            return TransportResponse(status_code=200, text='{"id": "30", "name": "new"}')

        parts = path.split("/")
        asset_id = parts[5]
        if path.endswith("/addresses"):
            if asset_id in address_errors:
                raise address_errors[asset_id]
            return TransportResponse(
                status_code=200, text=json.dumps({"address": f"addr-{asset_id}", "tag": ""})
            )
        if asset_id in wallet_errors:
            return TransportResponse(
                status_code=400, text=json.dumps({"message": wallet_errors[asset_id], "code": 1})
            )
        return TransportResponse(
            status_code=200, text=json.dumps({"id": asset_id, "address": f"wallet-{asset_id}"})
        )

    return handler


@pytest.mark.asyncio
async def test_onboard_account_provisions_each_asset(minter):
    transport = InMemoryTransport(
        onboarding_api(
            accounts=[{"id": "4", "customerRefId": "someone-else"}],
            wallet_errors={"ETH": "Asset not enabled"},
            address_errors={"ETH": ConnectionError("connection reset by peer")},
        )
    )
    dispatcher = Dispatcher(transport=transport, minter=minter, base_url=SANDBOX_BASE_URL)

    onboarding = await operations.onboard_account(
        dispatcher,
        AccountOnboardingInput(userId="u-1", email="ada@example.com", name="Ada"),
    )

    assert onboarding.vaultAccountId == "30"
    assert onboarding.userId == "u-1"
    assert onboarding.createdAt.endswith("Z")

    btc_wallet, eth_wallet = onboarding.assets
    assert btc_wallet.status == "created"
    assert btc_wallet.address == "wallet-BTC"
    assert btc_wallet.balance == "0"
    assert eth_wallet.status == "failed"
    assert eth_wallet.error == "Asset not enabled"

    btc_address, eth_address = onboarding.depositAddresses
    assert btc_address.address == "addr-BTC"
    assert btc_address.tag is None
    assert eth_address.status == "failed"
    assert eth_address.error == "connection reset by peer"

    created = [r for r in transport.requests if r.path == "/v1/vault/accounts"]
    assert json.loads(created[0].body) == {
        "name": "Ada - u-1",
        "autoFuel": False,
        "hiddenOnUI": False,
        "customerRefId": "u-1",
    }
    # one lookup, one vault, then a wallet and an address per asset
    assert len(transport.requests) == 6


@pytest.mark.asyncio
async def test_onboard_account_refuses_existing_user(minter):
    transport = InMemoryTransport(onboarding_api(accounts=[{"id": "7", "customerRefId": "u-1"}]))
    dispatcher = Dispatcher(transport=transport, minter=minter, base_url=SANDBOX_BASE_URL)

    with pytest.raises(ConflictError) as excinfo:
        await operations.onboard_account(
            dispatcher,
            AccountOnboardingInput(userId="u-1", email="ada@example.com", name="Ada"),
        )

    assert excinfo.value.status_code == 409
    assert excinfo.value.vault_account_id == "7"
    assert len(transport.requests) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "data, message",
    [
        ({"email": "ada@example.com", "name": "Ada"}, "Missing required fields"),
        ({"userId": "u-1", "name": "Ada"}, "Missing required fields"),
        ({"userId": "u-1", "email": "ada@example.com", "name": "Ada", "assets": [" "]}, "assets"),
    ],
)
async def test_onboard_account_validation(dispatcher, transport, minter, data, message):
    with pytest.raises(ValidationError, match=message):
        await operations.onboard_account(dispatcher, AccountOnboardingInput(**data))
    assert minter.calls == []
    assert transport.requests == []


@pytest.mark.asyncio
async def test_find_vault_by_ref_id_follows_pages(dispatcher, transport):
    transport.queue_json('{"accounts": [{"id": "1", "customerRefId": "a"}], "paging": {"after": "c1"}}')
    transport.queue_json('{"accounts": [{"id": "2", "customerRefId": "b"}], "paging": {}}')

    account = await operations.find_vault_by_ref_id(dispatcher, "b")

    assert account == {"id": "2", "customerRefId": "b"}
    assert [r.path for r in transport.requests] == [
        "/v1/vault/accounts_paged?limit=500",
        "/v1/vault/accounts_paged?limit=500&after=c1",
    ]


@pytest.mark.asyncio
async def test_find_vault_by_ref_id_without_match(dispatcher, transport):
    transport.queue_json('{"accounts": [], "paging": {"after": "c1"}}')
    transport.queue_json('{"accounts": [], "paging": {"after": "c1"}}')

    assert await operations.find_vault_by_ref_id(dispatcher, "nobody") is None
    assert len(transport.requests) == 2


@pytest.mark.asyncio
async def test_balance_by_ref_id(dispatcher, transport):
    transport.queue_json('{"accounts": [{"id": "9", "customerRefId": "u-1"}]}')
    transport.queue_json('{"id": "9", "assets": [{"id": "BTC", "balance": "0.25"}]}')
    transport.queue_json('{"accounts": [{"id": "9", "customerRefId": "u-1"}]}')
    transport.queue_json('{"id": "9", "assets": [{"id": "BTC", "balance": "0.25"}]}')

    found = await operations.get_account_balance_by_ref_id(dispatcher, "u-1", "btc")
    missing = await operations.get_account_balance_by_ref_id(dispatcher, "u-1", "ETH")

    assert found == {"userId": "u-1", "assetId": "BTC", "balance": "0.25"}
    assert missing["balance"] == "0"
    assert transport.requests[1].path == "/v1/vault/accounts/9"
