from collections import OrderedDict
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Sequence, Tuple

from eth_typing import ChecksumAddress
from eth_utils import to_checksum_address

from capturgo_deployment.exceptions import (
    DuplicateUnitError,
    FrozenLedgerError,
    UnresolvedReferenceError,
)

ChainId = int
ContractName = str


class NetworkInfo(NamedTuple):
    name: str
    chain_id: ChainId


class PersistedRecord(NamedTuple):
    """Durable snapshot of a completed deployment on a single chain."""

    network: str
    chain_id: ChainId
    timestamp: str
    deployer: ChecksumAddress
    contracts: "OrderedDict[ContractName, ChecksumAddress]"
    configuration: "OrderedDict[str, str]"

    def to_json(self) -> Dict[str, Any]:
        return OrderedDict(
            [
                ("network", self.network),
                ("chainId", str(self.chain_id)),
                ("timestamp", self.timestamp),
                ("deployer", self.deployer),
                ("contracts", OrderedDict(self.contracts)),
                ("configuration", OrderedDict(self.configuration)),
            ]
        )

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "PersistedRecord":
        return cls(
            network=data["network"],
            chain_id=int(data["chainId"]),
            timestamp=data["timestamp"],
            deployer=data["deployer"],
            contracts=OrderedDict(data["contracts"]),
            configuration=OrderedDict(data["configuration"]),
        )


def _utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2024-01-01T00:00:00.000Z"""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class DeploymentLedger:
    """
    Accumulates the results of a single deployment run, in deployment order.

    A ledger has exactly one writer, the executor running the plan. Once
    snapshotted for persistence it is frozen and rejects further records.
    """

    def __init__(
        self,
        network: NetworkInfo,
        deployer: str,
        configuration: Optional[Mapping[str, str]] = None,
    ):
        self.network = network
        self.deployer = to_checksum_address(deployer)
        self.configuration = OrderedDict(configuration or {})
        self.timestamp = None
        self._contracts = OrderedDict()
        self._constructor_args = OrderedDict()
        self._receipts = list()
        self._frozen = False

    def __contains__(self, name: str) -> bool:
        return name in self._contracts

    def __len__(self) -> int:
        return len(self._contracts)

    def __repr__(self):
        return (
            f"DeploymentLedger(network={self.network.name}, chain_id={self.network.chain_id}, "
            f"contracts={len(self)})"
        )

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def contracts(self) -> Mapping[ContractName, ChecksumAddress]:
        """Read-only view of unit name -> address, in deployment order."""
        return MappingProxyType(self._contracts)

    @property
    def receipts(self) -> List[Tuple[str, Any]]:
        return list(self._receipts)

    def _check_writable(self) -> None:
        if self._frozen:
            raise FrozenLedgerError("Ledger has been snapshotted and can no longer be modified.")

    def record(self, name: ContractName, address: str, constructor_args: Sequence[Any] = ()) -> None:
        self._check_writable()
        if name in self._contracts:
            raise DuplicateUnitError(f"'{name}' is already recorded at {self._contracts[name]}")
        self._contracts[name] = to_checksum_address(address)
        self._constructor_args[name] = list(constructor_args)

    def record_receipt(self, stage: str, receipt: Any) -> None:
        self._check_writable()
        self._receipts.append((stage, receipt))

    def resolve(self, name: ContractName) -> ChecksumAddress:
        try:
            return self._contracts[name]
        except KeyError:
            raise UnresolvedReferenceError(f"'{name}' has not been deployed in this run.")

    def constructor_args(self, name: ContractName) -> List[Any]:
        self.resolve(name)
        return list(self._constructor_args[name])

    def snapshot(self, timestamp: Optional[str] = None) -> PersistedRecord:
        """Freezes the ledger and returns its persistable form."""
        self._frozen = True
        if self.timestamp is None:
            self.timestamp = timestamp or _utc_timestamp()
        return PersistedRecord(
            network=self.network.name,
            chain_id=self.network.chain_id,
            timestamp=self.timestamp,
            deployer=self.deployer,
            contracts=OrderedDict(self._contracts),
            configuration=OrderedDict(self.configuration),
        )

    def to_json(self) -> Dict[str, Any]:
        """Current contents in record layout; usable for partial or unpersisted runs."""
        return OrderedDict(
            [
                ("network", self.network.name),
                ("chainId", str(self.network.chain_id)),
                ("timestamp", self.timestamp or _utc_timestamp()),
                ("deployer", self.deployer),
                ("contracts", OrderedDict(self._contracts)),
                ("configuration", OrderedDict(self.configuration)),
            ]
        )
