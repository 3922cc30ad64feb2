"""
In-memory contract index backed by a single JSON snapshot file.

The whole map is read once per batch (MetadataCache.load) and written back
wholesale at the end of it (persist). There is no partial write: work done
after the last persist is simply redone on the next run, which is fine since
every entry can be recomputed from the chain.
"""
from __future__ import annotations

import json
import logging
import pathlib
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterator, Optional

from .types import ContractKind, ContractType, normalize_address

logger = logging.getLogger(__name__)

# A single template verified against more than this many tokens is trusted
# for the rest of the contract
TEMPLATE_TRUST_THRESHOLD = 5

ID_PLACEHOLDER = "{id}"


class UnknownContractError(KeyError):
    """Token data recorded against a contract that was never classified."""


class SnapshotError(RuntimeError):
    pass


@dataclass
class UriTemplate:
    template: str
    verified_token_ids: set[int] = field(default_factory=set)

    def render(self, token_id: int) -> str:
        return self.template.replace(ID_PLACEHOLDER, str(token_id))

    def to_json(self) -> dict:
        return {
            "template": self.template,
            "verified_token_ids": [str(t) for t in sorted(self.verified_token_ids)],
        }

    @classmethod
    def from_json(cls, d: dict) -> "UriTemplate":
        return cls(str(d["template"]), {int(t) for t in d.get("verified_token_ids", [])})


@dataclass
class ContractData:
    contract_type: ContractType
    uris: dict[int, str] = field(default_factory=dict)
    templates: list[UriTemplate] = field(default_factory=list)
    unchecked_token_ids: set[int] = field(default_factory=set)

    def to_json(self) -> dict:
        return {
            "type": self.contract_type.to_json(),
            "uris": {str(k): v for k, v in sorted(self.uris.items())},
            "templates": [t.to_json() for t in self.templates],
            "unchecked_token_ids": [str(t) for t in sorted(self.unchecked_token_ids)],
        }

    @classmethod
    def from_json(cls, d: dict) -> "ContractData":
        # snapshots written before URIs were tracked only carry "type"
        return cls(
            contract_type=ContractType.from_json(d["type"]),
            uris={int(k): str(v) for k, v in (d.get("uris") or {}).items()},
            templates=[UriTemplate.from_json(t) for t in d.get("templates") or []],
            unchecked_token_ids={int(t) for t in d.get("unchecked_token_ids") or []},
        )


class MetadataCache:
    def __init__(self, path: str | pathlib.Path | None = None, contracts: Optional[dict[str, ContractData]] = None):
        self.path = pathlib.Path(path) if path is not None else None
        self._contracts: dict[str, ContractData] = dict(contracts or {})

    # ----------------------
    # Snapshot I/O
    # ----------------------

    @classmethod
    def load(cls, path: str | pathlib.Path) -> "MetadataCache":
        p = pathlib.Path(path)
        try:
            raw = p.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("No snapshot at %s, starting empty", p)
            return cls(p)
        except OSError as e:
            raise SnapshotError(f"Cannot read snapshot {p}: {e}") from e

        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError(f"expected an object, got {type(data).__name__}")
            contracts = {normalize_address(a): ContractData.from_json(d) for a, d in data.items()}
        except (ValueError, KeyError, TypeError) as e:
            raise SnapshotError(f"Corrupt snapshot {p}: {e}") from e

        logger.debug("Loaded %d contracts from %s", len(contracts), p)
        return cls(p, contracts)

    def persist(self, path: str | pathlib.Path | None = None) -> pathlib.Path:
        p = pathlib.Path(path) if path is not None else self.path
        if p is None:
            raise ValueError("No snapshot path given")
        data = {addr: entry.to_json() for addr, entry in self._contracts.items()}
        p.parent.mkdir(parents=True, exist_ok=True)
        # a crash mid-write must not clobber the previous snapshot
        tmp = p.with_suffix(p.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=1, sort_keys=True), encoding="utf-8")
        tmp.replace(p)
        logger.debug("Saved %d contracts to %s", len(data), p)
        return p

    # ----------------------
    # Classification
    # ----------------------

    def get_type(self, address: str) -> Optional[ContractType]:
        entry = self._contracts.get(normalize_address(address))
        return entry.contract_type if entry is not None else None

    def store_type(self, address: str, contract_type: ContractType) -> ContractType:
        """Insert if absent. Returns whatever is stored, which wins over `contract_type`."""
        entry = self._contracts.setdefault(normalize_address(address), ContractData(contract_type))
        return entry.contract_type

    # ----------------------
    # Token URIs
    # ----------------------

    def _entry(self, address: str) -> ContractData:
        addr = normalize_address(address)
        try:
            return self._contracts[addr]
        except KeyError:
            raise UnknownContractError(addr) from None

    def record_unchecked_token(self, address: str, token_id: int) -> None:
        entry = self._entry(address)
        if token_id not in entry.uris:
            entry.unchecked_token_ids.add(token_id)

    def record_token_uri(self, address: str, token_id: int, uri: str) -> None:
        # TODO: fold matching URIs into a template instead of storing each one
        entry = self._entry(address)
        entry.uris[token_id] = uri
        entry.unchecked_token_ids.discard(token_id)

    def record_template(self, address: str, template: str, token_id: int) -> UriTemplate:
        entry = self._entry(address)
        for t in entry.templates:
            if t.template == template:
                break
        else:
            t = UriTemplate(template)
            entry.templates.append(t)
        t.verified_token_ids.add(token_id)
        entry.unchecked_token_ids.discard(token_id)
        return t

    def token_uri(self, address: str, token_id: int) -> Optional[str]:
        entry = self._contracts.get(normalize_address(address))
        if entry is None:
            return None
        if token_id in entry.uris:
            return entry.uris[token_id]
        for t in entry.templates:
            if token_id in t.verified_token_ids:
                return t.render(token_id)
        return None

    def want_more_uris(self, address: str) -> bool:
        """
        False once the contract is covered by one well-verified template.
        Contracts that need several templates never reach that point.
        """
        entry = self._contracts.get(normalize_address(address))
        if entry is None:
            return True
        return not (
            len(entry.templates) == 1
            and len(entry.templates[0].verified_token_ids) > TEMPLATE_TRUST_THRESHOLD
        )

    # ----------------------
    # Introspection
    # ----------------------

    def entry(self, address: str) -> Optional[ContractData]:
        return self._contracts.get(normalize_address(address))

    def addresses(self) -> list[str]:
        return sorted(self._contracts)

    def items(self) -> Iterator[tuple[str, ContractData]]:
        for addr in self.addresses():
            yield addr, self._contracts[addr]

    def stats(self) -> dict[str, int]:
        counts = Counter(entry.contract_type.kind.value for entry in self._contracts.values())
        return {kind.value: counts.get(kind.value, 0) for kind in ContractKind}

    def __len__(self) -> int:
        return len(self._contracts)

    def __contains__(self, address: object) -> bool:
        return isinstance(address, str) and normalize_address(address) in self._contracts
