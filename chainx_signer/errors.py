"""Exception hierarchy shared by the signer client components."""

from __future__ import annotations

from typing import Any


class SignerError(RuntimeError):
    """Base class for errors surfaced to callers of the signer client."""

    code = "signer_error"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Return the ``{code, message}`` shape used by the connector protocol."""

        return {"code": self.code, "message": self.message}


class PairingDeniedError(SignerError):
    """Raised when the signer declined pairing or the handshake never completed."""

    code = "not_paired"


class SignerTransportError(SignerError):
    """Raised when a frame cannot be written to the signer channel."""

    code = "network_error"


class ConnectionLostError(SignerTransportError):
    """Raised for in-flight calls when the signer channel goes away."""


class SignerNotFoundError(SignerError):
    """Raised when no running signer could be located."""

    code = "signer_not_found"


class SignerRequestError(SignerError):
    """Raised when the signer answered a call with an ``error`` field."""

    code = "request_error"

    def __init__(self, error: Any) -> None:
        code = None
        message = str(error)
        if isinstance(error, dict):
            code = error.get("code")
            message = str(error.get("message", error))
        super().__init__(message, code=str(code) if code is not None else None)
        self.error = error


class FrameDecodeError(ValueError):
    """Raised when a protocol frame carries malformed JSON."""
