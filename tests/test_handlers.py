import pytest

from chain_equity_indexer.app.application.services.batch_committer import BatchCommitter
from chain_equity_indexer.app.application.services.dispatcher import EventDispatcher
from chain_equity_indexer.app.application.services.handlers import (
    EventHandlers,
    _corporate_action_record,
)
from chain_equity_indexer.app.domain.events import SCALE, CorporateActionRecord
from chain_equity_indexer.app.infrastructure.adapters.storage import queries
from chain_equity_indexer.app.infrastructure.adapters.storage.checkpoint_store import (
    SqlAlchemyCheckpointStore,
)
from chain_equity_indexer.app.infrastructure.adapters.storage.derived_state_store import (
    SqlAlchemyDerivedStateStore,
)
from chain_equity_indexer.app.infrastructure.adapters.storage.event_store import (
    SqlAlchemyEventStore,
)
from chain_equity_indexer.app.infrastructure.db.models import RawEventsDB, TransactionsDB
from tests.fakes import ALICE, BOB


@pytest.fixture
def committer(engine, chain, decoder):
    handlers = EventHandlers(chain=chain, derived=SqlAlchemyDerivedStateStore())
    return BatchCommitter(
        engine=engine,
        dispatcher=EventDispatcher(decoder=decoder, handlers=handlers),
        event_store=SqlAlchemyEventStore(),
        checkpoint_store=SqlAlchemyCheckpointStore(),
    )


async def test_issued_books_transaction_and_reads_balance(engine, chain, committer, logs):
    chain.balances = {ALICE: 250}
    chain.split_factor = 2 * SCALE

    await committer.commit([logs.issued(ALICE, 100, block=4)])

    async with engine.connect() as conn:
        (tx,) = await queries.list_transactions(conn)
        holder = await queries.get_shareholder(conn, ALICE)
    assert tx["event_type"] == "ISSUED"
    assert tx["from_address"] is None
    assert tx["amount"] == "100"
    # Balance is read through from the chain, not accumulated from the event amount.
    assert holder["balance"] == "250"
    assert holder["effective_balance"] == "500"
    assert holder["last_updated_block"] == 4


async def test_mint_transfer_is_not_double_booked(engine, chain, committer, logs, count_rows):
    chain.balances = {ALICE: 100}

    result = await committer.commit(
        [logs.mint(ALICE, 100, block=1, log_index=0), logs.issued(ALICE, 100, block=1, log_index=1)]
    )

    assert result.handled == 2
    assert await count_rows(RawEventsDB) == 2
    assert await count_rows(TransactionsDB) == 1
    assert ("balanceOf", (ALICE,)) in chain.reads
    # The mint Transfer itself triggers no chain reads.
    assert len([r for r in chain.reads if r[0] == "balanceOf"]) == 1


async def test_transfer_updates_both_parties(engine, chain, committer, logs):
    chain.balances = {ALICE: 70, BOB: 30}

    await committer.commit([logs.transfer(ALICE, BOB, 30, block=2)])

    async with engine.connect() as conn:
        holders = {h["address"]: h["balance"] for h in await queries.list_shareholders(conn)}
        (tx,) = await queries.list_transactions(conn, address=ALICE)
    assert holders == {ALICE: "70", BOB: "30"}
    assert (tx["from_address"], tx["to_address"], tx["event_type"]) == (ALICE, BOB, "TRANSFER")


async def test_failed_balance_read_leaves_no_partial_write(engine, chain, committer, logs, count_rows):
    chain.read_errors["balanceOf"] = ConnectionError("rpc down")

    result = await committer.commit([logs.transfer(ALICE, BOB, 30, block=2)])

    assert result.failed == 1
    assert await count_rows(TransactionsDB) == 0


async def test_corporate_action_payload_is_read_from_cap_table(engine, chain, committer, logs):
    chain.corporate_actions[3] = (3, "SPLIT", b"\x00\x02", 12, 1_700_000_144)

    await committer.commit([logs.corporate_action(3, "SPLIT", block=12)])

    async with engine.connect() as conn:
        (action,) = await queries.list_corporate_actions(conn)
    assert action["action_id"] == "3"
    assert action["action_type"] == "SPLIT"
    assert action["data"] == b"\x00\x02"
    assert action["block_number"] == 12


async def test_token_linked_only_records_raw_event(engine, chain, committer, logs, count_rows):
    result = await committer.commit([logs.token_linked(block=1)])

    assert (result.stored, result.handled) == (1, 1)
    assert await count_rows(RawEventsDB) == 1
    assert chain.reads == []


async def test_zero_balance_holder_row_is_retained(engine, chain, committer, logs):
    # Known open behaviour: an emptied holder keeps its row with a zero
    # balance; no removal policy is applied.
    chain.balances = {ALICE: 0, BOB: 100}

    await committer.commit([logs.transfer(ALICE, BOB, 100, block=5)])

    async with engine.connect() as conn:
        alice = await queries.get_shareholder(conn, ALICE)
    assert alice is not None
    assert (alice["balance"], alice["effective_balance"]) == ("0", "0")


def test_corporate_action_record_accepts_tuple_and_mapping():
    expected = CorporateActionRecord(
        action_id=1, action_type="SYMBOL_CHANGE", data=b"x", block_number=2, timestamp=3
    )

    assert _corporate_action_record((1, "SYMBOL_CHANGE", b"x", 2, 3)) == expected
    assert (
        _corporate_action_record(
            {"id": 1, "actionType": "SYMBOL_CHANGE", "data": b"x", "blockNumber": 2, "timestamp": 3}
        )
        == expected
    )
    with pytest.raises(ValueError):
        _corporate_action_record((1, "SYMBOL_CHANGE"))
