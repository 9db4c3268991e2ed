"""
Chain Client Tests.

============================================================
PURPOSE
============================================================
Behaviour of the chain clients against a scripted HTTP session.

TEST CATEGORIES:
- Address validation
- Transaction fetch, merge and truncation
- Explorer envelope handling
- Token metadata resolution order
- Layered price resolution and negative caching
- Chain-specific pricing (Mantle WETH, Lisk LSK)
- Block height fallback and on-chain balances

============================================================
"""

from decimal import Decimal
from unittest.mock import patch

import pytest

from wallet_analytics.cache import CacheRegistry
from wallet_analytics.clients.base import merge_transactions, month_start
from wallet_analytics.clients.ethereum import ETHEREUM_SEPOLIA, EthereumClient, eth_price_fallback
from wallet_analytics.clients.lisk import LiskClient
from wallet_analytics.clients.mantle import MantleClient, mnt_price_fallback
from wallet_analytics.config import AnalyticsConfig
from wallet_analytics.exceptions import APIError, APIRateLimitError, InvalidAddressError
from wallet_analytics.models import FetchOptions, TimeWindow, TransactionKind

from tests.wallet_analytics.fakes import (
    MARCH_2024,
    OTHER,
    TOKEN_A,
    WALLET,
    FakeResponse,
    fake_http,
    make_native,
    make_token,
)


USDT = "0xdac17f958d2ee523a2206206994597c13d831ec7"
MANTLE_WETH = "0xdeaddeaddeaddeaddeaddeaddeaddeaddead1111"
LISK_LSK = "0xac485391eb2d7d88253a7f1ef18c37f4242d1a24"


def row(tx_hash, block, ts, frm, to, value, gas_used="21000", gas_price="1000000000", **extra):
    data = {
        "hash": tx_hash,
        "blockNumber": str(block),
        "timeStamp": str(ts),
        "from": frm,
        "to": to,
        "value": str(value),
        "gasUsed": gas_used,
        "gasPrice": gas_price,
    }
    data.update(extra)
    return data


def ok(result):
    return {"status": "1", "message": "OK", "result": result}


def cryptocompare_router(prices: dict[tuple[str, str], float]):
    """Answer CryptoCompare calls from a (fsym, tsym) -> price table."""
    def route(params):
        key = (params.get("fsym"), params.get("tsyms"))
        if key in prices:
            return {key[0]: {key[1]: prices[key]}}
        return {"Response": "Error", "Message": "no data"}
    return route


def ethereum(handler, **config) -> tuple[EthereumClient, object]:
    http, session = fake_http(handler, chain_name="Ethereum")
    client = EthereumClient(
        config=AnalyticsConfig(etherscan_api_key="key", **config),
        caches=CacheRegistry(),
        http=http,
    )
    return client, session


# ============================================================
# ADDRESS VALIDATION
# ============================================================

class TestAddressValidation:
    """Tests for address validation."""

    @pytest.mark.asyncio
    async def test_invalid_address_raises_before_network(self):
        """Malformed addresses never reach the explorer."""
        client, session = ethereum(lambda *a: pytest.fail("network call made"))

        for bad in ["", "0x123", "a" * 42, "0x" + "g" * 40]:
            with pytest.raises(InvalidAddressError):
                await client.get_transactions(bad)

        assert session.calls == []

    def test_valid_address_lowercased(self):
        client, _ = ethereum(lambda *a: {})
        assert client.validate_address("0x" + "AB" * 20) == "0x" + "ab" * 20


# ============================================================
# TRANSACTIONS
# ============================================================

class TestTransactionFetch:
    """Tests for get_transactions."""

    @pytest.mark.asyncio
    async def test_merges_native_and_token_by_hash(self):
        """Token transfers inherit gas; zero-value parent calls are dropped."""
        def handler(method, url, params, body):
            if params["action"] == "txlist":
                return ok([
                    row("0xAA", 10, 200, WALLET, TOKEN_A, 0, gas_used="50000", gas_price="20"),
                    row("0xbb", 11, 300, OTHER, WALLET, 10 ** 18),
                ])
            return ok([
                row("0xaa", 10, 200, WALLET, OTHER, 5 * 10 ** 6, gas_used="", gas_price="",
                    contractAddress=TOKEN_A.upper().replace("0X", "0x"),
                    tokenSymbol="TKA", tokenDecimal="6"),
                row("0xcc", 5, 100, OTHER, WALLET, 7, contractAddress=TOKEN_A,
                    tokenSymbol="TKA", tokenDecimal="6"),
            ])

        client, session = ethereum(handler)
        txs = await client.get_transactions(WALLET)

        assert [tx.hash for tx in txs] == ["0xcc", "0xaa", "0xbb"]
        token_tx = txs[1]
        assert token_tx.kind == TransactionKind.TOKEN
        assert token_tx.contract_address == TOKEN_A
        assert token_tx.gas_used == 50_000
        assert token_tx.gas_price == 20
        assert txs[2].kind == TransactionKind.NATIVE
        assert all(call["params"]["chainid"] == "1" for call in session.calls)
        assert all(call["params"]["apikey"] == "key" for call in session.calls)

    def test_value_bearing_native_parent_is_kept(self):
        """A native transfer with value survives even if it shares a hash."""
        native = make_native(WALLET, OTHER, 10 ** 18, tx_hash="0x01")
        token = make_token(WALLET, OTHER, 5, tx_hash="0x01")

        merged = merge_transactions([native], [token])

        assert len(merged) == 2

    @pytest.mark.asyncio
    async def test_truncates_to_cap(self):
        """Merged lists beyond the cap are cut."""
        def handler(method, url, params, body):
            if params["action"] == "txlist":
                return ok([row(f"0x{i}", i, 100 + i, OTHER, WALLET, 1) for i in range(3)])
            return {"status": "0", "message": "No token transfers found", "result": []}

        client, _ = ethereum(handler)
        txs = await client.get_transactions(WALLET, FetchOptions(max_transactions=2))

        assert len(txs) == 2
        assert [tx.timestamp for tx in txs] == [100, 101]

    @pytest.mark.asyncio
    async def test_empty_history(self):
        """'No transactions found' is an empty list, not an error."""
        client, _ = ethereum(lambda *a: {
            "status": "0", "message": "No transactions found", "result": [],
        })

        assert await client.get_transactions(WALLET) == []


class TestExplorerEnvelope:
    """Tests for envelope unwrapping."""

    def test_error_envelope_raises_api_error(self):
        client, _ = ethereum(lambda *a: {})
        with pytest.raises(APIError, match="Invalid API Key"):
            client._unwrap_explorer_response(
                {"status": "0", "message": "NOTOK", "result": "Invalid API Key"}, "url"
            )

    def test_rate_limit_envelope(self):
        client, _ = ethereum(lambda *a: {})
        with pytest.raises(APIRateLimitError):
            client._unwrap_explorer_response(
                {"status": "0", "message": "NOTOK", "result": "Max rate limit reached"}, "url"
            )

    def test_non_dict_response(self):
        client, _ = ethereum(lambda *a: {})
        with pytest.raises(APIError):
            client._unwrap_explorer_response("<html>", "url")


# ============================================================
# METADATA
# ============================================================

class TestTokenMetadata:
    """Tests for metadata resolution order."""

    @pytest.mark.asyncio
    async def test_known_token_needs_no_request(self):
        client, session = ethereum(lambda *a: pytest.fail("network call made"))

        info = await client.get_token_metadata(USDT.upper().replace("0X", "0x"))

        assert info.symbol == "USDT"
        assert info.decimals == 6
        assert session.calls == []

    @pytest.mark.asyncio
    async def test_provider_then_cache(self):
        """Moralis answers once; the second lookup is served from cache."""
        def handler(method, url, params, body):
            assert "metadata" in url
            return [{"symbol": "abc", "decimals": "9", "name": "Abc Token"}]

        client, session = ethereum(handler, moralis_api_key="m")

        first = await client.get_token_metadata(TOKEN_A)
        second = await client.get_token_metadata(TOKEN_A)

        assert first.symbol == "ABC"
        assert first.decimals == 9
        assert second == first
        assert len(session.calls) == 1

    @pytest.mark.asyncio
    async def test_fallback_is_cached(self):
        """Provider failure yields UNKNOWN/18, which is cached too."""
        client, session = ethereum(
            lambda *a: FakeResponse(404, text="nope"), moralis_api_key="m"
        )

        info = await client.get_token_metadata(TOKEN_A)
        await client.get_token_metadata(TOKEN_A)

        assert info.symbol == "UNKNOWN"
        assert info.decimals == 18
        assert len(session.calls) == 1


# ============================================================
# PRICES
# ============================================================

class TestPriceResolution:
    """Tests for the layered price chain."""

    @staticmethod
    def handler(cc_prices, defillama=None):
        cryptocompare = cryptocompare_router(cc_prices)

        def handle(method, url, params, body):
            if "cryptocompare" in url:
                return cryptocompare(params)
            if "metadata" in url:
                return [{"symbol": "ABC", "decimals": 18}]
            if "llama" in url and defillama is not None:
                return {"coins": {f"ethereum:{TOKEN_A}": {"price": defillama}}}
            return FakeResponse(404)
        return handle

    @pytest.mark.asyncio
    async def test_stablecoin_is_one_dollar(self):
        client, _ = ethereum(self.handler({("ETH", "USD"): 2000}))

        price = await client.get_historical_price(USDT, MARCH_2024)

        assert price.price_usd == 1
        assert price.price_native == Decimal(1) / Decimal(2000)
        assert price.source == "stablecoin"

    @pytest.mark.asyncio
    async def test_wrapped_native_follows_native(self):
        client, _ = ethereum(self.handler({("ETH", "USD"): 3100}))

        price = await client.get_historical_price(
            "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2", MARCH_2024
        )

        assert price.price_usd == 3100
        assert price.price_native == 1

    @pytest.mark.asyncio
    async def test_cryptocompare_symbol_price_via_native(self):
        """Symbol priced in native, converted at native/USD."""
        client, _ = ethereum(
            self.handler({("ETH", "USD"): 2000, ("ABC", "ETH"): 0.001}),
            moralis_api_key="m",
        )

        price = await client.get_historical_price(TOKEN_A, MARCH_2024)

        assert price.price_usd == 2
        assert price.source == "cryptocompare"

    @pytest.mark.asyncio
    async def test_defillama_when_cryptocompare_empty(self):
        client, _ = ethereum(
            self.handler({("ETH", "USD"): 2000}, defillama=5),
            moralis_api_key="m",
        )

        price = await client.get_historical_price(TOKEN_A, MARCH_2024)

        assert price.price_usd == 5
        assert price.price_native == Decimal(5) / Decimal(2000)
        assert price.source == "defillama"

    @pytest.mark.asyncio
    async def test_defillama_uses_exact_timestamp(self):
        """CryptoCompare is asked for the month start, DefiLlama for the transfer time."""
        client, session = ethereum(
            self.handler({("ETH", "USD"): 2000}, defillama=5),
            moralis_api_key="m",
        )

        await client.get_historical_price(TOKEN_A, MARCH_2024)

        llama_urls = [c["url"] for c in session.calls if "llama" in c["url"]]
        assert llama_urls == [
            f"https://coins.llama.fi/prices/historical/{MARCH_2024}/ethereum:{TOKEN_A}"
        ]
        symbol_calls = [
            c["params"] for c in session.calls
            if "cryptocompare" in c["url"] and c["params"]["fsym"] == "ABC"
        ]
        assert [p["ts"] for p in symbol_calls] == [str(month_start(MARCH_2024))]

    @pytest.mark.asyncio
    async def test_price_cached_per_month(self):
        """Two timestamps in one month cost one resolution."""
        client, session = ethereum(
            self.handler({("ETH", "USD"): 2000}, defillama=5),
            moralis_api_key="m",
        )

        await client.get_historical_price(TOKEN_A, MARCH_2024)
        calls = len(session.calls)
        await client.get_historical_price(TOKEN_A, MARCH_2024 + 5 * 86_400)

        assert len(session.calls) == calls

    @pytest.mark.asyncio
    async def test_all_layers_fail_marks_token_failed(self):
        """Zero price, then no further requests while the token is parked."""
        client, session = ethereum(self.handler({("ETH", "USD"): 2000}), moralis_api_key="m")

        price = await client.get_historical_price(TOKEN_A, MARCH_2024)
        calls = len(session.calls)
        again = await client.get_historical_price(TOKEN_A, MARCH_2024 + 40 * 86_400)
        current = await client.get_current_price(TOKEN_A)

        assert price.price_usd == 0
        assert again.price_usd == 0
        assert current.price_usd == 0
        assert len(session.calls) == calls
        assert client.caches.failed_tokens.has(f"failed_1_{TOKEN_A}")

    @pytest.mark.asyncio
    async def test_native_fallback_when_source_fails(self):
        """Native price falls back to the dated constant."""
        client, _ = ethereum(self.handler({}))

        price = await client.get_native_token_price(MARCH_2024)

        assert price == eth_price_fallback(MARCH_2024) == Decimal("2200")

    @pytest.mark.asyncio
    async def test_native_price_cached_per_month(self):
        client, session = ethereum(self.handler({("ETH", "USD"): 2000}))

        first = await client.get_native_token_price(MARCH_2024)
        second = await client.get_native_token_price(month_start(MARCH_2024))

        assert first == second == 2000
        assert len(session.calls) == 1

    @pytest.mark.asyncio
    async def test_current_price_uses_short_lived_cache(self):
        """Current price is resolved once per hour bucket."""
        client, session = ethereum(
            self.handler({("ETH", "USD"): 2000}, defillama=4),
            moralis_api_key="m",
        )

        first = await client.get_current_price(TOKEN_A)
        calls = len(session.calls)
        second = await client.get_current_price(TOKEN_A)

        assert first.price_usd == second.price_usd == 4
        assert len(session.calls) == calls


class TestEthPriceFallback:
    """Tests for the dated native constants."""

    def test_buckets(self):
        assert eth_price_fallback(1_672_531_199) == Decimal("1800")  # 2022-12-31
        assert eth_price_fallback(1_717_200_000) == Decimal("2200")  # 2024-06-01
        assert eth_price_fallback(1_719_792_000) == Decimal("2500")  # 2024-07-01
        assert eth_price_fallback(1_740_000_000) == Decimal("2000")  # 2025

    def test_mnt_buckets(self):
        assert mnt_price_fallback(1_672_531_199) == Decimal("0.50")
        assert mnt_price_fallback(1_717_200_000) == Decimal("0.70")
        assert mnt_price_fallback(1_719_792_000) == Decimal("0.85")
        assert mnt_price_fallback(1_740_000_000) == Decimal("0.98")


# ============================================================
# CHAIN-SPECIFIC PRICING
# ============================================================

class TestChainSpecificPricing:
    """Tests for Mantle and Lisk pricing rules."""

    @pytest.mark.asyncio
    async def test_mantle_weth_priced_as_eth(self):
        """WETH on Mantle is ETH/USD, not MNT/USD."""
        cryptocompare = cryptocompare_router({("MNT", "USD"): 0.8, ("ETH", "USD"): 3000})
        http, _ = fake_http(lambda m, u, p, b: cryptocompare(p), chain_name="Mantle")
        client = MantleClient(caches=CacheRegistry(), http=http)

        price = await client.get_historical_price(MANTLE_WETH, MARCH_2024)

        assert price.price_usd == 3000
        assert price.price_native == Decimal(3000) / Decimal("0.8")

    @pytest.mark.asyncio
    async def test_mantle_native_price_tries_defillama(self):
        """MNT/USD falls back to DeFiLlama before the constant."""
        def handler(method, url, params, body):
            if "llama" in url:
                return {"coins": {"coingecko:mantle": {"price": 0.75}}}
            return {"Response": "Error"}

        http, _ = fake_http(handler, chain_name="Mantle")
        client = MantleClient(caches=CacheRegistry(), http=http)

        assert await client.get_native_token_price(MARCH_2024) == Decimal("0.75")

    @pytest.mark.asyncio
    async def test_lisk_lsk_fallback_price(self):
        """LSK priced at 1.0 when every source fails."""
        def handler(method, url, params, body):
            if "cryptocompare" in url and params.get("fsym") == "ETH":
                return {"ETH": {"USD": 2000}}
            return FakeResponse(404)

        http, _ = fake_http(handler, chain_name="Lisk")
        client = LiskClient(caches=CacheRegistry(), http=http)

        price = await client.get_historical_price(LISK_LSK, MARCH_2024)

        assert price.price_usd == Decimal("1.0")
        assert price.source == "fallback"


# ============================================================
# BLOCK HEIGHT / BALANCES
# ============================================================

class TestBlockHeight:
    """Tests for Etherscan block height handling."""

    @pytest.mark.asyncio
    async def test_plausible_height_used(self):
        client, _ = ethereum(lambda *a: {"jsonrpc": "2.0", "result": hex(21_500_000)})
        assert await client.get_current_block() == 21_500_000

    @pytest.mark.asyncio
    async def test_implausible_height_extrapolated(self):
        """A nonsense height falls back to the reference-block estimate."""
        client, _ = ethereum(lambda *a: {"result": "0x10"})

        with patch("wallet_analytics.clients.ethereum.time.time", return_value=1_730_001_210):
            height = await client.get_current_block()

        assert height == 21_000_100

    @pytest.mark.asyncio
    async def test_failed_query_extrapolated(self):
        client, _ = ethereum(lambda *a: FakeResponse(404))

        with patch("wallet_analytics.clients.ethereum.time.time", return_value=1_730_000_000):
            height = await client.get_current_block()

        assert height == 21_000_000

    def test_testnet_extrapolates_to_zero(self):
        http, _ = fake_http(lambda *a: {})
        client = EthereumClient(ETHEREUM_SEPOLIA, caches=CacheRegistry(), http=http)

        assert client.extrapolate_block() == 0
        assert client.chain_id == 11155111

    @pytest.mark.asyncio
    async def test_window_sets_start_block(self):
        """A bounded window starts paging near the window start."""
        def handler(method, url, params, body):
            if params.get("module") == "proxy":
                return {"result": hex(21_000_000)}
            return ok([])

        client, session = ethereum(handler)

        with patch("wallet_analytics.clients.ethereum.time.time", return_value=1_730_000_000):
            await client.get_transactions(
                WALLET,
                FetchOptions(window=TimeWindow(start=1_730_000_000 - 1210, end=1_730_000_000)),
            )

        account_calls = [c for c in session.calls if c["params"].get("module") == "account"]
        assert account_calls[0]["params"]["startblock"] == str(21_000_000 - 100)


class TestNativeBalance:
    """Tests for on-chain balance reads."""

    @pytest.mark.asyncio
    async def test_etherscan_balance(self):
        client, session = ethereum(lambda *a: ok(str(3 * 10 ** 18)))

        assert await client.get_native_balance(WALLET) == 3 * 10 ** 18
        assert session.calls[0]["params"]["action"] == "balance"

    @pytest.mark.asyncio
    async def test_blockscout_rpc_balance(self):
        """Blockscout chains read eth_getBalance over JSON-RPC."""
        http, session = fake_http(lambda *a: {"jsonrpc": "2.0", "id": 1, "result": "0xde0b6b3a7640000"})
        client = MantleClient(caches=CacheRegistry(), http=http)

        assert await client.get_native_balance(WALLET) == 10 ** 18
        assert session.calls[0]["method"] == "POST"
        assert session.calls[0]["url"] == "https://rpc.mantle.xyz"
        assert session.calls[0]["json"]["method"] == "eth_getBalance"

    @pytest.mark.asyncio
    async def test_rpc_error_raises(self):
        http, _ = fake_http(lambda *a: {"jsonrpc": "2.0", "error": {"message": "boom"}})
        client = LiskClient(caches=CacheRegistry(), http=http)

        with pytest.raises(APIError, match="eth_getBalance"):
            await client.get_native_balance(WALLET)

    def test_rpc_override_from_config(self):
        http, _ = fake_http(lambda *a: {})
        client = MantleClient(
            config=AnalyticsConfig(mantle_rpc_url="https://my-node.invalid"),
            caches=CacheRegistry(),
            http=http,
        )
        assert client.rpc_url == "https://my-node.invalid"
