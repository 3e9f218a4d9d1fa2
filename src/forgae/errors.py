"""Error types raised by forgae.

Every error carries a human readable message plus structured ``data`` so the
CLI and the deploy history can report failures consistently.
"""

from __future__ import annotations

from typing import Any


class ForgaeError(Exception):
    """Base class for forgae errors."""

    def __init__(self, message: str, data: dict[str, Any] | None = None):
        self.message = message
        self.data = data or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert error to a JSON-serializable dictionary."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "data": self.data,
        }


class InvalidKeypairError(ForgaeError):
    """Keypair or secret key could not be used to derive an identity."""

    def __init__(self, reason: str):
        super().__init__(
            message=f"Incorrect keypair or secret key passed: {reason}",
            data={"reason": reason},
        )


class NetworkConfigError(ForgaeError):
    """Network name could not be resolved to node/compiler endpoints."""

    def __init__(self, network: str, reason: str):
        super().__init__(
            message=f"Invalid network '{network}': {reason}",
            data={"network": network, "reason": reason},
        )


class TypeParseError(ForgaeError):
    """Type description is not well formed."""

    def __init__(self, text: str, position: int, reason: str):
        super().__init__(
            message=f"Cannot parse type {text!r} at position {position}: {reason}",
            data={"text": text, "position": position, "reason": reason},
        )


class UnknownFunctionError(ForgaeError):
    """Function is not present in the contract's function catalog."""

    def __init__(self, name: str, available: list[str]):
        super().__init__(
            message=f"Contract has no function '{name}'",
            data={"function": name, "available": available},
        )


class ApiError(ForgaeError):
    """Node or compiler returned an error response."""

    def __init__(self, url: str, reason: str, status: int | None = None):
        self.status = status
        self.reason = reason
        super().__init__(
            message=f"API ERROR: {reason}",
            data={"url": url, "status": status, "reason": reason},
        )


class CompileError(ForgaeError):
    """Contract source was rejected by the compiler."""

    def __init__(self, contract: str, reason: str):
        super().__init__(
            message=f"Failed to compile {contract}: {reason}",
            data={"contract": contract, "reason": reason},
        )


class ContractCallError(ForgaeError):
    """A contract call transaction was mined with a non-ok return type."""

    def __init__(self, function: str, return_type: str, reason: str):
        super().__init__(
            message=f"Call to '{function}' ended with {return_type}: {reason}",
            data={"function": function, "return_type": return_type, "reason": reason},
        )
