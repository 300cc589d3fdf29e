"""Exception types raised by the poly voter components."""


class PolyVoterError(Exception):
    """Base class for all poly voter errors."""


class CheckpointError(PolyVoterError):
    """Raised when the checkpoint store cannot be opened, read or written."""


class CodecError(PolyVoterError):
    """Raised when a cross-chain payload cannot be decoded."""


class PolyRpcError(PolyVoterError):
    """Raised when a Poly RPC node answers with a non-zero error code."""

    def __init__(self, method: str, code: int, desc: str = "") -> None:
        self.method = method
        self.code = code
        self.desc = desc
        super().__init__(f"{method} failed with error {code}: {desc or 'no description'}")


class SignerError(PolyVoterError):
    """Raised when the signing service refuses or fails to sign a vote."""
