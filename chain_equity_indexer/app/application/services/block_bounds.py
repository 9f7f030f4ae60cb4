from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class BlockRange:
    from_block: int
    to_block: int

    def validate(self) -> None:
        if self.from_block < 0 or self.to_block < 0:
            raise ValueError("Block numbers must be non-negative")
        if self.from_block > self.to_block:
            raise ValueError("from_block must be <= to_block")


def confirmation_safe_head(head: int, confirmation_blocks: int) -> int:
    """Newest block considered final: blocks above it are never indexed by catch-up."""
    return head - confirmation_blocks


def resume_point(last_indexed_block: int | None, start_block: int) -> int:
    """Last block treated as indexed; start_block - 1 when no checkpoint exists."""
    if last_indexed_block is None:
        return start_block - 1
    return last_indexed_block


def pending_range(
    *,
    last_indexed_block: int | None,
    start_block: int,
    head: int,
    confirmation_blocks: int,
) -> BlockRange | None:
    """Blocks still to index, or None when the safe head is already covered."""
    last = resume_point(last_indexed_block, start_block)
    safe_head = confirmation_safe_head(head, confirmation_blocks)
    if safe_head <= last:
        return None
    return BlockRange(from_block=last + 1, to_block=safe_head)
