"""Integration tests for the Mendi Finance supply and borrow adapters."""
from __future__ import annotations

import math

import pytest

from defi_adapters.chains import Chain
from defi_adapters.chains.evm.abi import TRANSFER_EVENT, ZERO_ADDRESS, address_topic, event_topic
from defi_adapters.errors import (
    NotSupportedError,
    ProtocolNotImplementedError,
    ProtocolTokenNotFoundError,
)
from defi_adapters.models import PositionType
from defi_adapters.protocols import Protocol
from defi_adapters.protocols.mendi_finance import MendiFinanceSupplyAdapter
from defi_adapters.protocols.mendi_finance.markets import CONTRACT_ADDRESSES
from defi_adapters.protocols.rates import SECONDS_PER_YEAR
from defi_adapters.services import AdapterRegistry, FileMetadataStore, MetadataCache

USER = "0x1111111111111111111111111111111111111111"
ME_USDC = "0x333d8b480bdb25ea7be4dd87eeb359988ce1b30d"
ME_ETH = "0xad7f33984bed10518012013d4ab0458d37fee6f3"
USDC = "0x176211869ca2b568f2a7d4ee941e073a821ee1ff"

CONTRACTS = CONTRACT_ADDRESSES[Chain.LINEA]


@pytest.fixture()
def linea(fake_client):
    """Two markets: meUSDC over USDC, and meETH over native ETH."""
    fake_client.respond(CONTRACTS.comptroller, "getAllMarkets()", ["address[]"], ([ME_USDC, ME_ETH],))
    fake_client.respond(ME_USDC, "underlying()", ["address"], (USDC,))
    fake_client.revert(ME_ETH, "underlying()")
    fake_client.add_token(ME_USDC, "Mendi USDC", "meUSDC", 8)
    fake_client.add_token(ME_ETH, "Mendi ETH", "meETH", 8)
    fake_client.add_token(USDC, "USD Coin", "USDC", 6)
    return fake_client


@pytest.fixture()
def supply(registry):
    return registry.get_adapter(Protocol.MENDI_FINANCE, Chain.LINEA, "supply")


@pytest.fixture()
def borrow(registry):
    return registry.get_adapter(Protocol.MENDI_FINANCE, Chain.LINEA, "borrow")


class TestMarketMetadata:
    @pytest.mark.asyncio
    async def test_markets_discovered_from_comptroller(self, supply, linea) -> None:
        metadata = await supply.build_metadata()

        assert set(metadata) == {ME_USDC.lower(), ME_ETH.lower()}
        usdc_market = metadata[ME_USDC.lower()]
        assert usdc_market["protocol_token"]["symbol"] == "meUSDC"
        assert usdc_market["underlying_token"]["decimals"] == 6

    @pytest.mark.asyncio
    async def test_market_without_underlying_is_native(self, supply, linea) -> None:
        metadata = await supply.build_metadata()

        underlying = metadata[ME_ETH.lower()]["underlying_token"]
        assert underlying["address"] == ZERO_ADDRESS
        assert underlying["symbol"] == "ETH"

    @pytest.mark.asyncio
    async def test_built_once_and_persisted(self, supply, linea, metadata_store) -> None:
        await supply.build_metadata()
        tokens = await supply.get_protocol_tokens()

        assert [t.symbol for t in tokens] == ["meUSDC", "meETH"]
        assert len(linea.calls_to("getAllMarkets()")) == 1
        assert metadata_store.read("mendi-finance/supply/linea.mendi") is not None

    @pytest.mark.asyncio
    async def test_corrupt_metadata_file_is_rebuilt(self, linea, tmp_path) -> None:
        store = FileMetadataStore(tmp_path)
        path = store.path_for("mendi-finance/supply/linea.mendi")
        path.parent.mkdir(parents=True)
        path.write_text('{"0xabc": {"protocol_tok')
        registry = AdapterRegistry({Chain.LINEA: linea}, MetadataCache(store))

        adapter = await registry.find_token_adapter(Chain.LINEA, ME_USDC)

        assert adapter.product_id == "supply"
        assert set(store.read("mendi-finance/supply/linea.mendi")) == {
            ME_USDC.lower(),
            ME_ETH.lower(),
        }

    @pytest.mark.asyncio
    async def test_unknown_market(self, supply, linea) -> None:
        with pytest.raises(ProtocolTokenNotFoundError):
            await supply.get_protocol_token_to_underlying_token_rate("0x" + "9" * 40)

    @pytest.mark.asyncio
    async def test_underlying_tokens_per_market(self, supply, borrow, linea) -> None:
        [usdc] = await supply.fetch_underlying_tokens_metadata(ME_USDC)
        assert usdc.symbol == "USDC"
        assert usdc.decimals == 6

        [eth] = await borrow.fetch_underlying_tokens_metadata(ME_ETH)
        assert eth.address == ZERO_ADDRESS

        with pytest.raises(ProtocolTokenNotFoundError):
            await supply.fetch_underlying_tokens_metadata("0x" + "9" * 40)

    def test_only_on_linea(self, registry, fake_client) -> None:
        with pytest.raises(NotSupportedError):
            MendiFinanceSupplyAdapter(
                client=fake_client, chain=Chain.ETHEREUM, protocol="mendi-finance", registry=registry
            )


class TestSupply:
    def test_details(self, supply) -> None:
        assert supply.get_protocol_details().position_type is PositionType.SUPPLY

    @pytest.mark.asyncio
    async def test_positions(self, supply, linea) -> None:
        linea.respond(ME_USDC, "balanceOf(address)", ["uint256"], (5000_00000000,))
        linea.respond(ME_ETH, "balanceOf(address)", ["uint256"], (0,))
        linea.respond(ME_USDC, "balanceOfUnderlying(address)", ["uint256"], (100_000000,))

        [position] = await supply.get_positions(USER, block_number=42)

        assert position.symbol == "meUSDC"
        assert position.balance_raw == 5000_00000000
        [usdc] = position.tokens
        assert usdc.symbol == "USDC"
        assert usdc.balance_raw == 100_000000
        [call] = linea.calls_to("balanceOfUnderlying(address)")
        assert call["block_number"] == 42

    @pytest.mark.asyncio
    async def test_exchange_rate_rescaled(self, supply, linea) -> None:
        # 0.02 USDC per meUSDC, scaled by 10^(18 - 8 + 6)
        linea.respond(ME_USDC, "exchangeRateCurrent()", ["uint256"], (2 * 10**14,))

        rate = await supply.get_protocol_token_to_underlying_token_rate(ME_USDC)

        assert rate.decimals == 8
        assert rate.tokens[0].underlying_rate_raw == 20000

    @pytest.mark.asyncio
    async def test_apy_compounds_per_second(self, supply, linea) -> None:
        linea.respond(ME_USDC, "supplyRatePerBlock()", ["uint256"], (10**9,))

        apy = await supply.get_apy(ME_USDC)

        apr = 10**9 * SECONDS_PER_YEAR / 1e18
        assert apy.apy_decimal == pytest.approx(math.expm1(apr) * 100, rel=1e-6)
        assert apy.symbol == "meUSDC"

    @pytest.mark.asyncio
    async def test_reward_apr(self, supply, linea) -> None:
        def spot_price(quote, base, amount, block_number):
            assert quote[-20:] == bytes.fromhex(CONTRACTS.mendi[2:])
            assert base[-20:] == bytes.fromhex(CONTRACTS.usdc_e[2:])
            assert amount == 10**18
            return (500000,)

        linea.respond(CONTRACTS.converter, "latestAnswer()", ["int256"], (10**8,))
        linea.respond(CONTRACTS.velocore, "spotPrice(bytes32,bytes32,uint256)", ["uint256"], spot_price)
        linea.respond(CONTRACTS.speed, "rewardMarketState(address,address)", ["uint256"], (10**16,))
        linea.respond(ME_USDC, "totalSupply()", ["uint256"], (10**14,))
        linea.respond(ME_USDC, "exchangeRateStored()", ["uint256"], (2 * 10**14,))
        linea.respond(CONTRACTS.oracle, "getPrice(address)", ["uint256"], (10**30,))

        apr = await supply.get_apr(ME_USDC)

        market_total_supply = (10**14 / 10**6) * (2 * 10**14 / 1e18) * 10**30
        expected = 10**16 * 0.5 * SECONDS_PER_YEAR / market_total_supply
        assert apr.apr_decimal == pytest.approx(expected * 100)

    @pytest.mark.asyncio
    async def test_deposits_minted_by_market(self, supply, linea) -> None:
        linea.respond(ME_USDC, "exchangeRateCurrent()", ["uint256"], (2 * 10**14,))
        linea.add_log(
            ME_USDC,
            [event_topic(TRANSFER_EVENT), address_topic(ME_USDC), address_topic(USER)],
            ["uint256"],
            [5000_00000000],
            10,
            "0xmint",
        )

        [deposit] = await supply.get_deposits(USER, ME_USDC, 0, 20)

        assert deposit.tokens[0].symbol == "USDC"
        assert deposit.tokens[0].balance_raw == 100_000000


class TestBorrow:
    def test_details(self, borrow) -> None:
        assert borrow.get_protocol_details().position_type is PositionType.BORROW

    @pytest.mark.asyncio
    async def test_protocol_tokens_use_underlying_decimals(self, borrow, linea) -> None:
        tokens = await borrow.get_protocol_tokens()
        assert [(t.symbol, t.decimals) for t in tokens] == [("meUSDC", 6), ("meETH", 18)]

    @pytest.mark.asyncio
    async def test_positions(self, borrow, linea) -> None:
        linea.respond(ME_USDC, "borrowBalanceCurrent(address)", ["uint256"], (250_000000,))
        linea.respond(ME_ETH, "borrowBalanceCurrent(address)", ["uint256"], (0,))

        [position] = await borrow.get_positions(USER)

        assert position.symbol == "meUSDC"
        assert position.decimals == 6
        assert position.balance_raw == 250_000000
        assert position.tokens[0].balance_raw == 250_000000

    @pytest.mark.asyncio
    async def test_rate_is_one_to_one(self, borrow, linea) -> None:
        rate = await borrow.get_protocol_token_to_underlying_token_rate(ME_USDC)
        assert rate.tokens[0].underlying_rate_raw == 10**6

    @pytest.mark.asyncio
    async def test_tvl_is_total_borrows(self, borrow, linea) -> None:
        linea.respond(ME_USDC, "totalBorrowsCurrent()", ["uint256"], (7_000000,))

        [tvl] = await borrow.get_total_value_locked([ME_USDC])

        assert tvl.total_supply_raw == 7_000000
        assert tvl.tokens[0].total_supply_raw == 7_000000

    @pytest.mark.asyncio
    async def test_apy(self, borrow, linea) -> None:
        linea.respond(ME_USDC, "borrowRatePerBlock()", ["uint256"], (2 * 10**9,))

        apy = await borrow.get_apy(ME_USDC)

        apr = 2 * 10**9 * SECONDS_PER_YEAR / 1e18
        assert apy.apy_decimal == pytest.approx(math.expm1(apr) * 100, rel=1e-6)

    @pytest.mark.asyncio
    async def test_movements_not_implemented(self, borrow) -> None:
        with pytest.raises(ProtocolNotImplementedError):
            await borrow.get_deposits(USER, ME_USDC, 0, 10)
        with pytest.raises(ProtocolNotImplementedError):
            await borrow.get_withdrawals(USER, ME_USDC, 0, 10)
