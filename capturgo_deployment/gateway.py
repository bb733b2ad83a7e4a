import typing
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Dict, List, Optional

from ape import Contract, networks, project
from ape.api import AccountAPI, ReceiptAPI
from ape.cli.choices import select_account
from ape.contracts.base import ContractContainer, ContractInstance

from capturgo_deployment.confirm import confirm_stage
from capturgo_deployment.constants import LOCAL_NETWORKS
from capturgo_deployment.exceptions import PlanValidationError
from capturgo_deployment.ledger import NetworkInfo


class ChainGateway(ABC):
    """
    Capability through which the orchestrator touches the chain.

    `deploy` and `call` block until the transaction is confirmed. Failures
    (rejections, reverts, timeouts) are raised as the gateway's own errors.
    """

    def prepare(self, unit_names: typing.Sequence[str]) -> None:
        """
        Checks, before the first transaction, that every unit can be deployed.
        Raises PlanValidationError otherwise.
        """

    @abstractmethod
    def deploy(self, unit_name: str, constructor_args: typing.Sequence[Any]) -> str:
        """Deploys `unit_name` and returns its address."""
        raise NotImplementedError

    @abstractmethod
    def call(self, address: str, method: str, args: typing.Sequence[Any]) -> Any:
        """Transacts `method` on the contract at `address` and returns the receipt."""
        raise NotImplementedError

    @abstractmethod
    def get_signer(self) -> str:
        raise NotImplementedError

    @abstractmethod
    def get_network(self) -> NetworkInfo:
        raise NotImplementedError

    @abstractmethod
    def get_balance(self, address: str) -> int:
        raise NotImplementedError


def get_contract_container(contract_name: str) -> ContractContainer:
    """Finds the compiled contract type in the project, then in its dependencies."""
    if hasattr(project, contract_name):
        return getattr(project, contract_name)
    for dependency_name, versions in project.dependencies.items():
        if len(versions) > 1:
            raise ValueError(f"Ambiguous {dependency_name} dependency for {contract_name}")
        dependency = next(iter(versions.values()))
        if hasattr(dependency, contract_name):
            return getattr(dependency, contract_name)
    raise ValueError(f"No contract artifact named '{contract_name}' in the project.")


def is_local_network(network_name: Optional[str] = None) -> bool:
    if network_name is None:
        network_name = networks.provider.network.name
    return network_name in LOCAL_NETWORKS


def verify_contracts(addresses: typing.Iterable[str]) -> None:
    """Publishes contract sources to the block explorer of the connected network."""
    explorer = networks.provider.network.explorer
    if explorer is None:
        raise ValueError(
            f"No explorer configured for network {networks.provider.network.name}; "
            "is the ape-etherscan plugin installed?"
        )
    for address in addresses:
        print(f"(i) Verifying {address}...")
        explorer.publish_contract(address)


class ApeGateway(ChainGateway):
    """
    Chain gateway backed by an ape account and the connected ape provider.
    Unless autosign is enabled, every deployment and transaction is confirmed
    interactively before it is sent.
    """

    def __init__(self, account: Optional[AccountAPI] = None, autosign: bool = False):
        if account is None:
            self._account = select_account()
        else:
            self._account = account
        if autosign:
            print("WARNING: Autosign is enabled. Transactions will be signed automatically.")
        self._autosign = autosign
        self._account.set_autosign(autosign)
        self._containers: Dict[str, ContractContainer] = dict()
        self._instances: Dict[str, ContractInstance] = dict()

    def prepare(self, unit_names: typing.Sequence[str]) -> None:
        for unit_name in unit_names:
            self._container(unit_name)

    def _container(self, unit_name: str) -> ContractContainer:
        if unit_name not in self._containers:
            try:
                self._containers[unit_name] = get_contract_container(unit_name)
            except ValueError as e:
                raise PlanValidationError(f"{unit_name}: {e}") from e
        return self._containers[unit_name]

    def get_signer(self) -> str:
        return self._account.address

    def get_network(self) -> NetworkInfo:
        provider = networks.provider
        return NetworkInfo(name=provider.network.name, chain_id=provider.chain_id)

    def get_balance(self, address: str) -> int:
        return networks.provider.get_balance(address)

    def deploy(self, unit_name: str, constructor_args: typing.Sequence[Any]) -> str:
        container = self._container(unit_name)
        if not self._autosign:
            abi_inputs = container.constructor.abi.inputs
            confirm_stage(f"deploy {unit_name}", self._named_args(abi_inputs, constructor_args))

        instance = self._account.deploy(container, *constructor_args)
        self._instances[instance.address] = instance
        return instance.address

    def call(self, address: str, method: str, args: typing.Sequence[Any]) -> ReceiptAPI:
        instance = self._instances.get(address) or Contract(address)
        handler = getattr(instance, method)
        if not self._autosign:
            abi_inputs = handler.abis[0].inputs if handler.abis else []
            stage = f"{instance.contract_type.name}[{address[:10]}].{method}"
            confirm_stage(stage, self._named_args(abi_inputs, args))
        return handler(*args, sender=self._account)

    @staticmethod
    def _named_args(abi_inputs: typing.Iterable[Any], args: typing.Sequence[Any]) -> OrderedDict:
        inputs: List[Any] = list(abi_inputs)
        named_args = OrderedDict()
        for position, value in enumerate(args):
            if position < len(inputs) and inputs[position].name:
                name = inputs[position].name
            else:
                name = f"arg{position}"
            named_args[name] = value
        return named_args
