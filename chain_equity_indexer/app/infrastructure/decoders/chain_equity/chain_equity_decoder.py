from __future__ import annotations

import logging
from typing import Any

from chain_equity_indexer.app.domain.events import (
    EVENTS_OF_INTEREST,
    ClassifiedLog,
    ContractRole,
    CorporateActionRecorded,
    DecodedEvent,
    EventKind,
    Issued,
    RawLog,
    SplitExecuted,
    TokenLinked,
    Transfer,
)
from chain_equity_indexer.app.domain.ports.out import EventDecoder
from chain_equity_indexer.app.infrastructure.decoders.chain_equity.abi_event_decoder import (
    AbiEventDecoder,
)
from chain_equity_indexer.app.registry.contracts import ContractRegistry

logger = logging.getLogger(__name__)


class ChainEquityEventDecoder(EventDecoder):
    """
    Classifies raw logs emitted by the CapTable / ChainEquityToken contracts.

    A log is resolved in two steps:
    - the emitting address selects the contract role,
    - topic0 selects the event among that role's events of interest.
    The decoded args are then mapped into a typed event variant.
    """

    def __init__(self, *, registry: ContractRegistry) -> None:
        self._registry = registry
        self._decoders: dict[tuple[ContractRole, bytes], tuple[EventKind, AbiEventDecoder]] = {}
        for role, kind in EVENTS_OF_INTEREST:
            decoder = AbiEventDecoder(event_abi=registry.event_abi(role, kind))
            self._decoders[(role, decoder.topic0)] = (kind, decoder)

    def classify(self, log: RawLog) -> ClassifiedLog | None:
        role = self._registry.role_for_address(log.address)
        topic0 = log.topic0
        if role is None or topic0 is None:
            return None

        entry = self._decoders.get((role, bytes(topic0)))
        if entry is None:
            return None

        kind, decoder = entry
        args = decoder.decode(topics=log.topics, data=log.data)
        if args is None:
            logger.warning(
                "Failed to decode %s event at block %s, log_index %s",
                kind.value,
                log.block_number,
                log.log_index,
            )
            return None

        return ClassifiedLog(log=log, role=role, kind=kind, event=_to_event(kind, args))


def _to_event(kind: EventKind, args: dict[str, Any]) -> DecodedEvent:
    match kind:
        case EventKind.TOKEN_LINKED:
            return TokenLinked(cap_table=args["capTable"], token=args["token"])
        case EventKind.ISSUED:
            return Issued(to=args["to"], amount=args["amount"])
        case EventKind.TRANSFER:
            return Transfer(sender=args["from"], recipient=args["to"], value=args["value"])
        case EventKind.SPLIT_EXECUTED:
            return SplitExecuted(
                old_factor=args["oldFactor"],
                new_factor=args["newFactor"],
                block_number=args["blockNumber"],
            )
        case EventKind.CORPORATE_ACTION_RECORDED:
            return CorporateActionRecorded(
                action_id=args["actionId"],
                action_type=args["actionType"],
                block_number=args["blockNumber"],
            )
