"""Error taxonomy shared by the registry, the base adapter and the RPC layer."""
from __future__ import annotations


class AdapterError(Exception):
    """Base class for every error raised by this package."""


class NotSupportedError(AdapterError):
    """The requested protocol / chain / product combination is not registered."""


class ProtocolNotImplementedError(AdapterError, NotImplementedError):
    """A capability the adapter deliberately does not provide."""

    def __init__(self, message: str = "Not implemented for this adapter") -> None:
        super().__init__(message)


class UpstreamCallError(AdapterError, RuntimeError):
    """An RPC call failed, timed out or returned malformed data."""


class ContractCallReverted(UpstreamCallError):
    """``eth_call`` executed and the contract reverted."""


class TokenMetadataError(UpstreamCallError):
    """The address does not expose a recognisable ERC-20 interface."""


class ProtocolTokenNotFoundError(AdapterError, LookupError):
    """The address is not one of the adapter's protocol tokens."""


class PreconditionError(AdapterError, ValueError):
    """A required input is missing; raised before any network call."""
