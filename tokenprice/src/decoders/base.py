"""Base decoder interface and decoder registry.

A decoder turns one protocol's state snapshot into the price of a target
asset expressed in the venue's other asset. Decoders are pure: no I/O, exact
rational arithmetic, float conversion left to the caller.

Decoders are registered as an ordered list of tagged variants; the snapshot
type selects the variant:

.. code-block:: python

    @register_decoder
    class MyDecoder(BaseDecoder):
        protocol = Protocol.CONSTANT_PRODUCT
        snapshot_type = MySnapshot

        def decode(self, snapshot: MySnapshot, target: str) -> Fraction:
            ...
"""

import logging
from abc import ABC, abstractmethod
from fractions import Fraction
from typing import Any, ClassVar

from ..errors import DecodeError
from ..PoolDescriptor import Protocol

logger = logging.getLogger(__name__)


def same_asset(a: str, b: str) -> bool:
    """Compare two asset identifiers.

    EVM addresses compare case-insensitively; Solana base58 mints are
    case-sensitive.

    :param a: First identifier.
    :param b: Second identifier.
    :returns: True if both name the same asset.
    """
    if a.startswith("0x") and b.startswith("0x"):
        return a.lower() == b.lower()
    return a == b


class BaseDecoder(ABC):
    """Abstract base class for protocol decoders.

    :cvar protocol: Protocol family handled by this decoder.
    :cvar snapshot_type: Snapshot class this decoder accepts.
    """

    protocol: ClassVar[Protocol]
    snapshot_type: ClassVar[type]

    @abstractmethod
    def decode(self, snapshot: Any, target: str) -> Fraction:
        """Return the price of ``target`` in the snapshot's other asset.

        :param snapshot: Protocol-specific state snapshot.
        :param target: Identifier of the asset being priced.
        :returns: Exact ratio, strictly positive.
        :raises DecodeError: If the target is not part of the snapshot.
        :raises ZeroLiquidityError: If either side of the ratio is zero.
        """
        pass

    @abstractmethod
    def liquidity(self, snapshot: Any) -> Fraction:
        """Return a decimal-normalized liquidity measure for the snapshot.

        :param snapshot: Protocol-specific state snapshot.
        :returns: Sum of both sides' (virtual) reserves in whole-token units.
        """
        pass


# Ordered registry of decoders (populated by subclass imports)
DECODER_REGISTRY: dict[Protocol, BaseDecoder] = {}


def register_decoder(cls: type[BaseDecoder]) -> type[BaseDecoder]:
    """Decorator to register a decoder class in the global registry.

    :param cls: Decoder class to register.
    :returns: The registered class (unchanged).
    :raises ValueError: If the decoder does not declare a protocol.
    """
    if not getattr(cls, "protocol", None):
        raise ValueError(f"Decoder {cls.__name__} must define a 'protocol' class variable")
    DECODER_REGISTRY[cls.protocol] = cls()
    return cls


def get_decoder(protocol: Protocol) -> BaseDecoder:
    """Get the registered decoder for a protocol.

    :param protocol: Protocol family.
    :returns: Decoder instance.
    :raises DecodeError: If no decoder handles the protocol.
    """
    decoder = DECODER_REGISTRY.get(Protocol(protocol))
    if decoder is None:
        raise DecodeError(f"No decoder registered for protocol {protocol}")
    return decoder


def _decoder_for(snapshot: Any) -> BaseDecoder:
    for decoder in DECODER_REGISTRY.values():
        if isinstance(snapshot, decoder.snapshot_type):
            return decoder
    raise DecodeError(f"No decoder accepts snapshot {type(snapshot).__name__}")


def decode_ratio(snapshot: Any, target: str) -> Fraction:
    """Dispatch a snapshot to its decoder and return the target's price.

    :param snapshot: Any registered snapshot type.
    :param target: Identifier of the asset being priced.
    :returns: Price of target in the other asset.
    """
    return _decoder_for(snapshot).decode(snapshot, target)


def snapshot_liquidity(snapshot: Any) -> Fraction:
    """Dispatch a snapshot to its decoder and return its liquidity measure."""
    return _decoder_for(snapshot).liquidity(snapshot)
