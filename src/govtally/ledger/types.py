"""
Ledger record types.

Verbose transaction and block JSON from a node is loosely typed: fields may
be missing, null, or of an unexpected type, and a few inputs are recognised
only by the presence of a marker key. These records parse that JSON into
typed, immutable values and keep the marker presence explicit, so that
classification code never has to guess at the raw shape. Parsing never
raises; anything unusable becomes ``None`` or an empty tuple.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _as_float(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    return 0.0


def _as_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _as_str_tuple(value: Any) -> Tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(item for item in value if isinstance(item, str))


@dataclass(frozen=True)
class ScriptPubKey:
    """Locking script descriptor of an output."""

    type: Optional[str] = None
    hex: Optional[str] = None
    addresses: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Any) -> Optional["ScriptPubKey"]:
        if not isinstance(data, Mapping):
            return None
        return cls(
            type=_as_str(data.get("type")),
            hex=_as_str(data.get("hex")),
            addresses=_as_str_tuple(data.get("addresses")),
        )


@dataclass(frozen=True)
class TxInput:
    """Transaction input.

    Treasury spends and votes have no previous outpoint; they carry a
    ``treasuryspend`` or ``stakebase`` key instead. Only the key's presence
    matters, so it is recorded as a flag.
    """

    txid: Optional[str] = None
    vout: Optional[int] = None
    has_treasury_spend: bool = False
    has_stakebase: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> Optional["TxInput"]:
        if not isinstance(data, Mapping):
            return None
        return cls(
            txid=_as_str(data.get("txid")),
            vout=_as_int(data.get("vout")),
            has_treasury_spend="treasuryspend" in data,
            has_stakebase="stakebase" in data,
        )


@dataclass(frozen=True)
class TxOutput:
    """Transaction output; ``value`` is in coins."""

    value: float = 0.0
    script: Optional[ScriptPubKey] = None

    @classmethod
    def from_dict(cls, data: Any) -> Optional["TxOutput"]:
        if not isinstance(data, Mapping):
            return None
        return cls(
            value=_as_float(data.get("value")),
            script=ScriptPubKey.from_dict(data.get("scriptPubKey")),
        )

    @property
    def script_type(self) -> Optional[str]:
        return self.script.type if self.script else None

    @property
    def first_address(self) -> Optional[str]:
        if self.script and self.script.addresses:
            return self.script.addresses[0]
        return None


@dataclass(frozen=True)
class TransactionRecord:
    """Verbose transaction as returned by the ledger.

    Malformed ``vin``/``vout`` entries are dropped rather than rejected.
    """

    txid: Optional[str] = None
    version: Optional[int] = None
    expiry: Optional[int] = None
    vin: Tuple[TxInput, ...] = ()
    vout: Tuple[TxOutput, ...] = ()

    @classmethod
    def from_dict(cls, data: Any) -> "TransactionRecord":
        if not isinstance(data, Mapping):
            return cls()

        raw_vin = data.get("vin")
        raw_vout = data.get("vout")
        vin = tuple(
            item
            for item in (
                TxInput.from_dict(v) for v in (raw_vin if isinstance(raw_vin, list) else [])
            )
            if item is not None
        )
        vout = tuple(
            item
            for item in (
                TxOutput.from_dict(v) for v in (raw_vout if isinstance(raw_vout, list) else [])
            )
            if item is not None
        )

        return cls(
            txid=_as_str(data.get("txid")),
            version=_as_int(data.get("version")),
            expiry=_as_int(data.get("expiry")),
            vin=vin,
            vout=vout,
        )


@dataclass(frozen=True)
class BlockRecord:
    """Block summary with its regular and stake transaction ids."""

    height: int
    hash: str
    time: int = 0
    tx: Tuple[str, ...] = ()
    stx: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BlockRecord":
        """Parse a verbose ``getblock`` result.

        Unlike transaction records a block without height or hash is useless
        to a scan, so those two fields are required.
        """
        height = _as_int(data.get("height"))
        block_hash = _as_str(data.get("hash"))
        if height is None or block_hash is None:
            raise ValueError("block record requires height and hash")
        return cls(
            height=height,
            hash=block_hash,
            time=_as_int(data.get("time")) or 0,
            tx=_as_str_tuple(data.get("tx")),
            stx=_as_str_tuple(data.get("stx")),
        )

    @property
    def all_tx_ids(self) -> Tuple[str, ...]:
        return self.tx + self.stx


@dataclass
class LedgerCallStats:
    """Call counters kept by data sources for diagnostics."""

    calls: Dict[str, int] = field(default_factory=dict)
    failures: Dict[str, int] = field(default_factory=dict)

    def record(self, method: str, ok: bool = True) -> None:
        self.calls[method] = self.calls.get(method, 0) + 1
        if not ok:
            self.failures[method] = self.failures.get(method, 0) + 1
