"""Error taxonomy for price discovery.

Everything except :class:`AllSourcesFailedError` is recovered inside the
resolver by advancing to the next stage.
"""


class PriceError(Exception):
    """Base exception for price discovery errors."""

    pass


class NotFoundError(PriceError):
    """Raised when no venue exists for a token on any supported protocol."""

    pass


class DecodeError(PriceError):
    """Raised when raw pool/account state does not match the expected layout."""

    pass


class ZeroLiquidityError(PriceError):
    """Raised when either side of a price ratio is exactly zero."""

    pass


class RpcError(PriceError):
    """Raised when a chain RPC call fails."""

    pass


class RpcTimeoutError(RpcError):
    """Raised when a chain RPC call does not complete within its timeout."""

    pass


class AllSourcesFailedError(PriceError):
    """Raised when every resolution stage failed.

    :ivar failures: Ordered (stage, reason) pairs describing each failure.
    """

    def __init__(self, subject: str, failures: list[tuple[str, str]] | None = None):
        """Initialize the error.

        :param subject: What was being priced (e.g., "base:0xabc...").
        :param failures: Ordered (stage, reason) pairs.
        """
        self.subject = subject
        self.failures = list(failures or [])
        details = "; ".join(f"{stage}: {reason}" for stage, reason in self.failures)
        super().__init__(
            f"All price sources failed for {subject}" + (f" ({details})" if details else "")
        )
