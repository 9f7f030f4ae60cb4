from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from eth_utils import keccak

from chain_equity_indexer.app.domain.events import ContractRole, EventKind


ABI_DIR = Path(__file__).resolve().parent / "abi"

_ABI_FILES: dict[ContractRole, str] = {
    ContractRole.CAP_TABLE: "CapTable.json",
    ContractRole.TOKEN: "ChainEquityToken.json",
}


def load_abi(abi_path: Path) -> list[dict[str, Any]]:
    if not abi_path.exists():
        raise FileNotFoundError(f"ABI file not found: {abi_path}")
    data = json.loads(abi_path.read_text(encoding="utf-8"))

    # Common formats:
    # - [ ... ] (ABI list)
    # - { "abi": [ ... ] } (Hardhat artifact)
    if isinstance(data, list):
        abi = data
    elif isinstance(data, dict) and isinstance(data.get("abi"), list):
        abi = data["abi"]
    else:
        raise ValueError(
            f"Unsupported ABI JSON format in {abi_path}. Expected list or dict with 'abi' list."
        )

    return [x for x in abi if isinstance(x, dict)]


def find_event_abi(abi: list[dict[str, Any]], event_name: str) -> dict[str, Any]:
    events = [x for x in abi if x.get("type") == "event" and x.get("name") == event_name]
    if not events:
        names = sorted({x.get("name") for x in abi if x.get("type") == "event"})
        raise ValueError(f"Event {event_name!r} not found in ABI. Available events: {names}")
    if len(events) > 1:
        raise ValueError(
            f"Multiple events named {event_name!r} found in ABI. "
            "Disambiguation by full signature is required."
        )
    return events[0]


def event_signature(event_abi: Mapping[str, Any]) -> str:
    name = event_abi.get("name")
    inputs = event_abi.get("inputs", [])
    if not isinstance(name, str) or not isinstance(inputs, list):
        raise ValueError("Invalid event ABI: missing name/inputs")
    types = []
    for inp in inputs:
        if not isinstance(inp, dict) or "type" not in inp:
            raise ValueError("Invalid event ABI inputs")
        types.append(inp["type"])
    return f"{name}({','.join(types)})"


def event_topic0(event_abi: Mapping[str, Any]) -> bytes:
    return keccak(text=event_signature(event_abi))


@dataclass(frozen=True)
class ContractInfo:
    role: ContractRole
    address: str
    abi: list[dict[str, Any]] = field(repr=False)


class ContractRegistry:
    """
    Addresses and ABIs of the contracts the indexer follows.

    Addresses are normalized to lowercase 0x-hex so that lookups by the
    emitting address of a log are case-insensitive.
    """

    def __init__(self, contracts: Mapping[ContractRole, ContractInfo]) -> None:
        self._contracts = dict(contracts)
        self._by_address = {info.address: info for info in self._contracts.values()}

    @classmethod
    def from_addresses(
        cls,
        *,
        cap_table_address: str,
        token_address: str,
        abi_dir: Path = ABI_DIR,
    ) -> "ContractRegistry":
        addresses = {
            ContractRole.CAP_TABLE: cap_table_address,
            ContractRole.TOKEN: token_address,
        }
        return cls(
            {
                role: ContractInfo(
                    role=role,
                    address=address.lower(),
                    abi=load_abi(abi_dir / _ABI_FILES[role]),
                )
                for role, address in addresses.items()
            }
        )

    def get(self, role: ContractRole) -> ContractInfo:
        return self._contracts[role]

    def address_of(self, role: ContractRole) -> str:
        return self._contracts[role].address

    def role_for_address(self, address: str) -> ContractRole | None:
        info = self._by_address.get(address.lower())
        return info.role if info is not None else None

    def event_abi(self, role: ContractRole, event_kind: EventKind) -> dict[str, Any]:
        return find_event_abi(self._contracts[role].abi, event_kind.value)

    def topic0(self, role: ContractRole, event_kind: EventKind) -> bytes:
        return event_topic0(self.event_abi(role, event_kind))
