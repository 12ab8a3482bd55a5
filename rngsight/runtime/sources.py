"""
rngsight.runtime.sources
========================

Random byte sources and bit extraction.

A source only has to fill a buffer with random bytes. `SystemRandomSource`
reads the operating system CSPRNG; tests inject deterministic sources.

Examples
--------
>>> from rngsight.runtime.sources import count_set_bits
>>> count_set_bits(bytes([0b10110100]), 8)
4
>>> count_set_bits(bytes([0b11111111]), 3)
3
"""

from __future__ import annotations
import math
import os
from dataclasses import dataclass
from typing import List, Optional, Protocol, Tuple, runtime_checkable

from loguru import logger

from rngsight.core.errors import RandomSourceError
from rngsight.core.names import QualityRating


@runtime_checkable
class RandomSource(Protocol):
    def fill(self, buffer: bytearray) -> None:
        """Overwrite every byte of `buffer` with random data."""
        ...


class SystemRandomSource:
    """Bytes from the operating system's cryptographic generator."""

    def fill(self, buffer: bytearray) -> None:
        try:
            buffer[:] = os.urandom(len(buffer))
        except (NotImplementedError, OSError) as exc:
            raise RandomSourceError(f"System random source unavailable: {exc}") from exc


def bytes_for_bits(bits: int) -> int:
    return math.ceil(bits / 8)


def count_set_bits(data: bytes, bits: int) -> int:
    """Count set bits among the first `bits` bits of `data`.

    Bits are taken low-order first from successive bytes; when `bits` is not a
    multiple of 8 the last byte contributes only its low ``bits % 8`` bits.
    """
    if bits < 0:
        raise ValueError(f"bits must be non-negative (got {bits})")
    if len(data) * 8 < bits:
        raise ValueError(f"need {bytes_for_bits(bits)} bytes for {bits} bits (got {len(data)})")
    full, rest = divmod(bits, 8)
    total = sum(bin(b).count("1") for b in data[:full])
    if rest:
        total += bin(data[full] & ((1 << rest) - 1)).count("1")
    return total


def draw_trial_value(source: RandomSource, bits: int) -> int:
    """Fill ``ceil(bits/8)`` bytes from `source` and count the set bits.

    Raises:
        RandomSourceError: If the source fails.
    """
    buffer = bytearray(bytes_for_bits(bits))
    try:
        source.fill(buffer)
    except RandomSourceError:
        raise
    except Exception as exc:
        raise RandomSourceError(f"Random source failed: {exc}") from exc
    return count_set_bits(buffer, bits)


@dataclass(frozen=True)
class SourceCheck:
    supported: bool
    quality: Optional[QualityRating]
    issues: Tuple[str, ...]


def verify_random_source(
    source: Optional[RandomSource] = None, probe_bytes: int = 32
) -> SourceCheck:
    """Probe a source once and flag obviously broken output.

    A failing source is reported as unsupported; a probe where every byte is
    identical is rated poor.
    """
    source = source or SystemRandomSource()
    probe = bytearray(probe_bytes)
    try:
        source.fill(probe)
    except Exception as exc:
        logger.warning("Random source probe failed: {}", exc)
        return SourceCheck(False, None, (f"Random source failed: {exc}",))

    issues: List[str] = []
    if len(set(probe)) == 1:
        issues.append("Random source returned identical bytes")
        return SourceCheck(True, QualityRating.POOR, tuple(issues))
    return SourceCheck(True, QualityRating.EXCELLENT, ())
