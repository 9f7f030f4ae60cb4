from __future__ import annotations

from typing import Any, Mapping, Sequence

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError

from chain_equity_indexer.app.registry.contracts import event_signature, event_topic0

_DYNAMIC_TYPES = ("string", "bytes")


class AbiEventDecoder:
    """
    ABI-based decoder for a single event.

    It:
    - computes topic0 = keccak("EventName(type1,type2,...)"),
    - decodes indexed args from topics[1:],
    - decodes non-indexed args from `data` with eth_abi.

    Output dict is keyed by ABI input names. Addresses are returned as
    lowercase 0x-hex strings, integers as Python ints.
    """

    def __init__(self, *, event_abi: Mapping[str, Any]) -> None:
        self._event_abi = event_abi
        self._signature = event_signature(event_abi)
        self._topic0 = event_topic0(event_abi)

        self._inputs: list[dict[str, Any]] = list(event_abi.get("inputs", []))
        self._indexed_inputs = [i for i in self._inputs if i.get("indexed") is True]
        self._non_indexed_inputs = [i for i in self._inputs if not i.get("indexed")]

        self._non_indexed_types = [i["type"] for i in self._non_indexed_inputs]
        self._non_indexed_names = [i["name"] for i in self._non_indexed_inputs]

    @property
    def topic0(self) -> bytes:
        return self._topic0

    @property
    def event_name(self) -> str:
        return str(self._event_abi["name"])

    @property
    def event_signature(self) -> str:
        return self._signature

    def decode(self, *, topics: Sequence[bytes], data: bytes) -> dict[str, Any] | None:
        """
        Return decoded args, or None if the log is not this event or its
        payload does not match the ABI.
        """
        if not topics or bytes(topics[0]) != self._topic0:
            return None
        if len(topics) - 1 != len(self._indexed_inputs):
            return None

        out: dict[str, Any] = {}
        try:
            for inp, topic in zip(self._indexed_inputs, topics[1:], strict=True):
                out[inp["name"]] = self._decode_topic(inp["type"], bytes(topic))

            if self._non_indexed_inputs:
                values = abi_decode(self._non_indexed_types, bytes(data))
                for name, typ, val in zip(
                    self._non_indexed_names, self._non_indexed_types, values, strict=True
                ):
                    out[name] = self._normalize_abi_value(typ, val)
        except (DecodingError, ValueError):
            return None

        return out

    def _decode_topic(self, typ: str, topic: bytes) -> Any:
        if len(topic) != 32:
            raise ValueError(f"Expected 32 bytes topic, got len={len(topic)}")
        # Indexed dynamic values are stored as their keccak hash.
        if typ in _DYNAMIC_TYPES or typ.endswith("]") or typ.startswith("tuple"):
            return topic
        (val,) = abi_decode([typ], topic)
        return self._normalize_abi_value(typ, val)

    def _normalize_abi_value(self, typ: str, val: Any) -> Any:
        if typ == "address":
            if isinstance(val, str):
                return val.lower()
            if isinstance(val, (bytes, bytearray)) and len(val) == 20:
                return "0x" + bytes(val).hex()
            return val

        if typ.startswith("uint") or typ.startswith("int"):
            return int(val)

        if typ.startswith("bytes"):
            if isinstance(val, (bytes, bytearray, memoryview)):
                return bytes(val)
            return val

        return val
