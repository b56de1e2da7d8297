import asyncio
import time

import pytest
import requests_mock
from hypesignal.config.settings import Settings, TESTNET_API_URL, TradingConfigError
from hypesignal.exchange import hyperliquid as hl

INFO_URL = f"{TESTNET_API_URL}/info"

META = {"universe": [{"name": "BTC", "szDecimals": 5}, {"name": "ETH", "szDecimals": 4}, {"name": "SOL", "szDecimals": 2}]}
SPOT_META = {
    "tokens": [
        {"name": "USDC", "index": 0, "szDecimals": 8},
        {"name": "HYPE", "index": 150, "szDecimals": 2},
        {"name": "PURR", "index": 1, "szDecimals": 0},
    ],
    "universe": [
        {"name": "@107", "index": 107, "tokens": [150, 0]},
        {"name": "PURR/USDC", "index": 0, "tokens": [1, 0]},
        {"name": "broken", "index": 9, "tokens": [999]},
    ],
}


def _info_reply(payloads):
    def reply(request, context):
        return payloads[request.json()["type"]]

    return reply


def test_symbol_directory_resolves_perps_and_spot():
    with requests_mock.Mocker() as m:
        m.post(INFO_URL, json=_info_reply({"meta": META, "spotMeta": SPOT_META}))
        symbols = hl.SymbolDirectory(hl.InfoClient(TESTNET_API_URL))
        assert symbols.loaded is False

        eth = symbols.resolve("eth")
        assert (eth.symbol, eth.asset_id, eth.size_decimals, eth.is_spot) == ("ETH", 1, 4, False)
        assert m.call_count == 2

        hype = symbols.resolve("HYPE/USDC")
        assert (hype.asset_id, hype.size_decimals, hype.info_symbol, hype.is_spot) == (10107, 2, "@107", True)
        assert symbols.resolve("purr/usdc").info_symbol == "PURR/USDC"
        assert symbols.resolve("DOGE") is None
        assert m.call_count == 2


def test_symbol_directory_refresh_picks_up_new_listing():
    payloads = {"meta": META, "spotMeta": {"tokens": [], "universe": []}}
    with requests_mock.Mocker() as m:
        m.post(INFO_URL, json=_info_reply(payloads))
        symbols = hl.SymbolDirectory(hl.InfoClient(TESTNET_API_URL))
        assert symbols.resolve("ENA") is None
        payloads["meta"] = {"universe": META["universe"] + [{"name": "ENA", "szDecimals": 0}]}
        symbols.refresh()
        assert symbols.resolve("ENA").asset_id == 3


def test_best_ask_reads_first_ask_level():
    book = {"coin": "SOL", "levels": [[{"px": "99.9", "sz": "3"}], [{"px": "100.1", "sz": "2"}]]}
    with requests_mock.Mocker() as m:
        m.post(INFO_URL, json=book)
        info = hl.InfoClient(TESTNET_API_URL)
        assert info.best_ask("SOL") == 100.1
        assert m.last_request.json() == {"type": "l2Book", "coin": "SOL"}

        m.post(INFO_URL, json={"levels": [[{"px": "99.9", "sz": "3"}], []]})
        assert info.best_ask("SOL") is None


def test_info_http_error_raises_exchange_error():
    with requests_mock.Mocker() as m:
        m.post(INFO_URL, status_code=500, text="boom")
        with pytest.raises(hl.ExchangeError):
            hl.InfoClient(TESTNET_API_URL).meta()


def test_open_position_sizes_filters_zero_and_bad_rows():
    state = {
        "assetPositions": [
            {"position": {"coin": "eth", "szi": "0.5"}},
            {"position": {"coin": "SOL", "szi": "0"}},
            {"position": {"coin": "BTC", "szi": "nan"}},
            {"position": {"coin": "ENA", "szi": "oops"}},
            {"position": {"coin": "EIGEN", "szi": "-3"}},
        ]
    }
    with requests_mock.Mocker() as m:
        m.post(INFO_URL, json=state)
        sizes = hl.InfoClient(TESTNET_API_URL).open_position_sizes("0xabc")
    assert sizes == {"ETH": 0.5, "EIGEN": -3.0}


def test_extract_statuses():
    ok = {"status": "ok", "response": {"type": "order", "data": {"statuses": [{"filled": {"totalSz": "1"}}]}}}
    assert hl.extract_statuses(ok) == [{"filled": {"totalSz": "1"}}]
    assert hl.extract_statuses({"status": "err", "response": "bad nonce"}) == [{"error": "bad nonce"}]
    assert hl.extract_statuses(None) == []


def test_derive_address():
    key = "4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
    assert hl.derive_address(key) == "0x2c7536E3605D9C16a7a3D7b1898e529396a65c23"
    assert hl.derive_address(f"0x{key}") == "0x2c7536E3605D9C16a7a3D7b1898e529396a65c23"
    assert hl.derive_address(None) is None
    assert hl.derive_address("not-a-key") is None


@pytest.mark.asyncio
async def test_call_with_timeout_raises_exchange_error():
    def slow():
        time.sleep(0.5)

    with pytest.raises(hl.ExchangeError):
        await hl.call_with_timeout(slow, timeout=0.05)


@pytest.mark.asyncio
async def test_client_factory_builds_once_under_concurrency():

    def builder():
        time.sleep(0.05)
        return object()

    factory = hl.HyperliquidClientFactory(Settings(), builder=builder)
    results = await asyncio.gather(*(factory.get() for _ in range(5)))
    assert factory.builds == 1
    assert all(r is results[0] for r in results)
    assert await factory.get() is results[0]


@pytest.mark.asyncio
async def test_client_factory_requires_private_key():
    factory = hl.HyperliquidClientFactory(Settings(hyperliquid_private_key=None))
    with pytest.raises(TradingConfigError):
        await factory.get()
    assert factory.builds == 0


def test_info_non_json_body_raises_exchange_error():
    with requests_mock.Mocker() as m:
        m.post(INFO_URL, status_code=200, text="<html>502 Bad Gateway</html>")
        with pytest.raises(hl.ExchangeError, match="non-JSON"):
            hl.InfoClient(TESTNET_API_URL).best_ask("SOL")
