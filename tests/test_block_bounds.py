import pytest

from chain_equity_indexer.app.application.services.block_bounds import (
    BlockRange,
    confirmation_safe_head,
    pending_range,
    resume_point,
)
from chain_equity_indexer.app.domain.events import SCALE, RawLog, effective_balance, sort_logs


def test_block_range_validation():
    BlockRange(from_block=5, to_block=5).validate()

    with pytest.raises(ValueError):
        BlockRange(from_block=6, to_block=5).validate()
    with pytest.raises(ValueError):
        BlockRange(from_block=-1, to_block=5).validate()


def test_confirmation_safe_head():
    assert confirmation_safe_head(100, 3) == 97
    assert confirmation_safe_head(100, 0) == 100


def test_resume_point_without_checkpoint_uses_start_block():
    assert resume_point(None, 0) == -1
    assert resume_point(None, 50) == 49
    assert resume_point(70, 50) == 70


def test_pending_range_fresh_database():
    assert pending_range(
        last_indexed_block=None, start_block=10, head=20, confirmation_blocks=3
    ) == BlockRange(from_block=10, to_block=17)


def test_pending_range_resumes_after_checkpoint():
    assert pending_range(
        last_indexed_block=12, start_block=0, head=20, confirmation_blocks=3
    ) == BlockRange(from_block=13, to_block=17)


@pytest.mark.parametrize("last, head", [(17, 20), (20, 20), (None, 2)])
def test_pending_range_nothing_to_do(last, head):
    assert pending_range(last_indexed_block=last, start_block=0, head=head, confirmation_blocks=3) is None


def test_effective_balance_truncates_toward_zero():
    assert effective_balance(3, SCALE * 3 // 2) == 4
    assert effective_balance(0, 7 * SCALE) == 0


def test_effective_balance_has_no_float_precision_loss():
    balance = 123_456_789_012_345_678_901_234_567_890
    assert effective_balance(balance, 2 * SCALE) == 2 * balance
    assert effective_balance(balance, SCALE + 1) == balance + balance // SCALE


def test_sort_logs_orders_by_block_then_log_index():
    def log(block, idx):
        return RawLog(address="0x", topics=(), data=b"", block_number=block, log_index=idx)

    ordered = sort_logs([log(2, 0), log(1, 5), log(1, 1), log(3, 0)])
    assert [l.key for l in ordered] == [(1, 1), (1, 5), (2, 0), (3, 0)]
