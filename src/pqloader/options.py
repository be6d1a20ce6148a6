"""
pqloader options — how a reader iterates.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional

from pqloader.decoder import DecoderOptions
from pqloader.plan import DEFAULT_CHUNK_SIZE
from pqloader.shuffle import RandomSource, SplitMix64, random_seed


@dataclass(frozen=True)
class IteratorOptions:
    """Options accepted by ``get_iterator`` on both reader kinds.

    Parameters
    ----------
    shuffle : bool
        Shuffle chunk order, and in a group reader interleave members at
        random.  Rows inside a chunk always keep file order.
    chunk_size : int or None
        Rows per decoder call.  ``None`` aligns chunks with the file's
        first row group.  A group reader applies it to each member.
    decoder_options : DecoderOptions or None
        Passed through to the decoder untouched.
    seed : int or None
        Base seed for a :class:`SplitMix64`.  Ignored when *rng* is given.
    rng : RandomSource or None
        Explicit random source.  Consumed by the iterator it is given to.
    epoch : int
        Mixed into *seed* so every epoch gets a distinct, reproducible order.
    """

    shuffle: bool = False
    chunk_size: Optional[int] = DEFAULT_CHUNK_SIZE
    decoder_options: Optional[DecoderOptions] = None
    seed: Optional[int] = None
    rng: Optional[RandomSource] = field(default=None, compare=False)
    epoch: int = 0

    def __post_init__(self) -> None:
        if self.chunk_size is not None:
            if isinstance(self.chunk_size, bool) or not isinstance(self.chunk_size, int):
                raise TypeError(f"chunk_size must be an int, got {self.chunk_size!r}")
            if self.chunk_size < 1:
                raise ValueError(f"chunk_size must be >= 1, got {self.chunk_size}")
        if self.epoch < 0:
            raise ValueError(f"epoch must be >= 0, got {self.epoch}")

    def make_rng(self) -> RandomSource:
        """Return the random source this iteration should draw from."""
        if self.rng is not None:
            return self.rng
        seed = self.seed if self.seed is not None else random_seed()
        if self.epoch:
            seed = SplitMix64.derive_key(seed, self.epoch)
        return SplitMix64(seed)


def resolve_options(
    options: Optional[IteratorOptions], overrides: Dict[str, Any],
) -> IteratorOptions:
    """Merge keyword *overrides* into *options* (or the defaults)."""
    if options is None:
        options = IteratorOptions()
    if overrides:
        options = replace(options, **overrides)
    return options
