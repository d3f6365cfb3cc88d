"""Minimal ABI helpers: function calls, return values and event logs."""
from __future__ import annotations

from typing import Any, Sequence

from eth_abi import decode, encode
from eth_utils import keccak, to_checksum_address

from ...errors import UpstreamCallError

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
MAX_UINT128 = 2**128 - 1

TRANSFER_EVENT = "Transfer(address,address,uint256)"


def _argument_types(signature: str) -> list[str]:
    """``"collect(address,uint256)"`` -> ``["address", "uint256"]``."""
    start = signature.index("(")
    inner = signature[start + 1 : signature.rindex(")")]
    return [t.strip() for t in inner.split(",")] if inner.strip() else []


def _normalise(abi_type: str, value: Any) -> Any:
    if abi_type == "address":
        return to_checksum_address(value)
    if abi_type.startswith("bytes") and isinstance(value, str):
        return bytes.fromhex(value.removeprefix("0x"))
    return value


def function_selector(signature: str) -> bytes:
    return keccak(text=signature)[:4]


def encode_call(signature: str, *args: Any) -> str:
    """Encode calldata for ``signature`` (canonical form, no spaces)."""
    types = _argument_types(signature)
    if len(types) != len(args):
        raise ValueError(
            f"{signature} takes {len(types)} arguments, got {len(args)}"
        )
    values = [_normalise(t, a) for t, a in zip(types, args)]
    return "0x" + (function_selector(signature) + encode(types, values)).hex()


def decode_output(types: Sequence[str], data: bytes) -> tuple[Any, ...]:
    """Decode ``eth_call`` return data, raising on empty or short payloads."""
    if not data:
        raise UpstreamCallError("Empty return data (no contract at address?)")
    try:
        return tuple(decode(list(types), data))
    except Exception as e:
        raise UpstreamCallError(f"Malformed return data for {list(types)}: {e}") from e


def event_topic(signature: str) -> str:
    return "0x" + keccak(text=signature).hex()


def address_topic(address: str) -> str:
    return "0x" + address.lower().removeprefix("0x").rjust(64, "0")


def uint_topic(value: int) -> str:
    return "0x" + format(int(value), "064x")


def decode_address_topic(topic: str) -> str:
    return to_checksum_address("0x" + topic.removeprefix("0x")[-40:])


def decode_log_data(types: Sequence[str], data: str) -> tuple[Any, ...]:
    """Decode the non-indexed part of a log entry."""
    return decode_output(types, bytes.fromhex(data.removeprefix("0x")))


def parse_quantity(value: int | str) -> int:
    """JSON-RPC quantities arrive hex-encoded (``"0x1a"``)."""
    if isinstance(value, int):
        return value
    return int(value, 16) if value.startswith("0x") else int(value)
