"""Unit tests for ABI encoding helpers."""
from __future__ import annotations

import pytest
from eth_abi import encode

from defi_adapters.chains.evm.abi import (
    ZERO_ADDRESS,
    address_topic,
    decode_address_topic,
    decode_log_data,
    decode_output,
    encode_call,
    event_topic,
    function_selector,
    parse_quantity,
    uint_topic,
)
from defi_adapters.errors import UpstreamCallError

USER = "0x1111111111111111111111111111111111111111"


class TestEncodeCall:
    def test_balance_of_selector(self) -> None:
        assert function_selector("balanceOf(address)").hex() == "70a08231"

    def test_encodes_arguments(self) -> None:
        data = encode_call("balanceOf(address)", USER)
        assert data == "0x70a08231" + "0" * 24 + "11" * 20

    def test_no_arguments(self) -> None:
        assert encode_call("totalSupply()") == "0x18160ddd"

    def test_argument_count_mismatch(self) -> None:
        with pytest.raises(ValueError, match="takes 1 arguments"):
            encode_call("balanceOf(address)")

    def test_bytes32_hex_string(self) -> None:
        word = "0x" + "ab" * 32
        data = encode_call("spotPrice(bytes32,bytes32,uint256)", word, word, 1)
        assert data[10:74] == "ab" * 32


class TestDecodeOutput:
    def test_decodes_values(self) -> None:
        assert decode_output(["uint256", "address"], encode(["uint256", "address"], [7, USER])) == (
            7,
            USER,
        )

    def test_empty_data_raises(self) -> None:
        with pytest.raises(UpstreamCallError, match="Empty return data"):
            decode_output(["uint256"], b"")

    def test_short_data_raises(self) -> None:
        with pytest.raises(UpstreamCallError, match="Malformed"):
            decode_output(["uint256"], b"\x01\x02")


class TestTopics:
    def test_transfer_topic(self) -> None:
        assert event_topic("Transfer(address,address,uint256)") == (
            "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"
        )

    def test_address_topic_round_trip(self) -> None:
        topic = address_topic(USER)
        assert len(topic) == 66
        assert decode_address_topic(topic) == USER

    def test_zero_address_topic(self) -> None:
        assert address_topic(ZERO_ADDRESS) == "0x" + "0" * 64

    def test_uint_topic(self) -> None:
        assert uint_topic(255) == "0x" + "0" * 62 + "ff"

    def test_decode_log_data(self) -> None:
        data = "0x" + encode(["uint256"], [42]).hex()
        assert decode_log_data(["uint256"], data) == (42,)


class TestParseQuantity:
    @pytest.mark.parametrize(
        "value, expected", [("0x1a", 26), (26, 26), ("26", 26), ("0x0", 0)]
    )
    def test_parses(self, value, expected) -> None:
        assert parse_quantity(value) == expected
