import typing
from abc import ABC, abstractmethod
from collections import OrderedDict
from numbers import Number
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional

import yaml
from eth_utils import keccak
from web3 import Web3

from capturgo_deployment.constants import (
    DEPLOYER_INDICATOR,
    ETHER_PREFIX,
    ROLE_PREFIX,
    VARIABLE_PREFIX,
)
from capturgo_deployment.exceptions import PlanValidationError

CONTRACT_CONSTRUCTOR_PARAMETER_KEY = "constructor"


class VariableContext:
    def __init__(
        self,
        contract_names: List[str],
        consumer: str,
        available: typing.Collection[str] = (),
        constants: typing.Dict[str, Any] = None,
        roles: typing.Dict[str, bytes] = None,
    ):
        self.contract_names = contract_names or list()
        self.consumer = consumer
        self.available = set(available)
        self.constants = constants if constants is not None else dict()
        self.roles = roles if roles is not None else dict()


# Variables


class Variable(ABC):
    @abstractmethod
    def resolve(self, ledger) -> Any:
        raise NotImplementedError

    @classmethod
    def is_variable(cls, param: Any) -> bool:
        """Returns True if the param is a variable."""
        return isinstance(param, str) and param.startswith(VARIABLE_PREFIX)


class DeployerAccount(Variable):
    @classmethod
    def is_deployer(cls, value: str) -> bool:
        """Returns True if the variable is a special deployer variable."""
        return value == DEPLOYER_INDICATOR

    def resolve(self, ledger) -> Any:
        return ledger.deployer

    def __repr__(self):
        return f"${DEPLOYER_INDICATOR}"


class Constant(Variable):
    def __init__(self, constant_name: str, context: VariableContext):
        try:
            self.constant_value = context.constants[constant_name]
        except KeyError:
            raise PlanValidationError(
                f"{context.consumer}: constant '{constant_name}' not found in deployment plan."
            )
        self.constant_name = constant_name

    @classmethod
    def is_constant(cls, value: str) -> bool:
        """Returns True if the variable is a plan constant."""
        return value.isupper()

    def resolve(self, ledger) -> Any:
        return self.constant_value

    def __repr__(self):
        return f"${self.constant_name}"


class TokenAmount(Constant):
    """A constant expressed in whole tokens, resolved to its 18-decimal base units."""

    @classmethod
    def is_token_amount(cls, value: str) -> bool:
        return value.startswith(ETHER_PREFIX)

    def __init__(self, variable: str, context: VariableContext):
        super().__init__(variable[len(ETHER_PREFIX) :], context)
        amount = self.constant_value
        if isinstance(amount, bool) or not isinstance(amount, (Number, str)):
            raise PlanValidationError(
                f"{context.consumer}: constant '{self.constant_name}' is not a token amount."
            )
        try:
            self.constant_value = Web3.to_wei(amount, "ether")
        except (TypeError, ValueError, ArithmeticError) as e:
            raise PlanValidationError(
                f"{context.consumer}: constant '{self.constant_name}' is not a token amount."
            ) from e

    def __repr__(self):
        return f"${ETHER_PREFIX}{self.constant_name}"


def format_token_amount(wei: int) -> str:
    """Whole-token decimal string of a base-unit amount, e.g. "1000000.0" or "2.5"."""
    whole, _, fraction = format(Web3.from_wei(wei, "ether"), "f").partition(".")
    return f"{whole}.{fraction.rstrip('0') or '0'}"


class Role(Variable):
    """An AccessControl role identifier: keccak256 of the role name."""

    @classmethod
    def is_role(cls, value: str) -> bool:
        return value.startswith(ROLE_PREFIX)

    def __init__(self, variable: str, context: VariableContext):
        self.role_name = variable[len(ROLE_PREFIX) :]
        if not self.role_name:
            raise PlanValidationError(f"{context.consumer}: empty role name.")
        if self.role_name not in context.roles:
            context.roles[self.role_name] = keccak(text=self.role_name)
        self.role_id = context.roles[self.role_name]

    def resolve(self, ledger) -> bytes:
        return self.role_id

    def __repr__(self):
        return f"${ROLE_PREFIX}{self.role_name}"


class ContractName(Variable):
    def __init__(self, contract_name: str, context: VariableContext):
        if contract_name not in context.contract_names:
            raise PlanValidationError(
                f"{context.consumer}: contract '{contract_name}' is not part of the deployment plan."
            )
        if contract_name not in context.available:
            raise PlanValidationError(
                f"{context.consumer}: '{contract_name}' is referenced before it is deployed."
            )
        self.contract_name = contract_name

    def resolve(self, ledger) -> Any:
        """Resolves a contract address."""
        return ledger.resolve(self.contract_name)

    def __repr__(self):
        return f"${self.contract_name}"


def _resolve_param(value: Any, ledger) -> Any:
    """Resolves a single parameter value or a list of parameter values."""
    if isinstance(value, list):
        return [_resolve_param(v, ledger) for v in value]

    if isinstance(value, Variable):
        return value.resolve(ledger)

    return value  # literally a value


def resolve_params(parameters: typing.Iterable[Any], ledger) -> List[Any]:
    return [_resolve_param(value, ledger) for value in parameters]


def _variable_from_value(variable: str, context: VariableContext) -> Variable:
    variable = variable[len(VARIABLE_PREFIX) :]
    if DeployerAccount.is_deployer(variable):
        return DeployerAccount()
    elif Role.is_role(variable):
        return Role(variable, context)
    elif TokenAmount.is_token_amount(variable):
        return TokenAmount(variable, context)
    elif Constant.is_constant(variable):
        return Constant(variable, context)
    else:
        return ContractName(variable, context)


def _process_raw_value(value: Any, context: VariableContext) -> Any:
    if isinstance(value, list):
        return [_process_raw_value(v, context) for v in value]

    if Variable.is_variable(value):
        value = _variable_from_value(value, context)

    return value


def _iter_variables(values: typing.Iterable[Any]) -> typing.Iterator[Variable]:
    for value in values:
        if isinstance(value, list):
            yield from _iter_variables(value)
        elif isinstance(value, Variable):
            yield value


# Plan


class ContractUnit(NamedTuple):
    """A named deployable and its ordered constructor argument bindings."""

    name: str
    constructor_args: "OrderedDict[str, Any]"

    def dependencies(self) -> List[str]:
        """Names of the units whose addresses this unit's constructor consumes."""
        return [
            v.contract_name
            for v in _iter_variables(self.constructor_args.values())
            if isinstance(v, ContractName)
        ]


class Action(NamedTuple):
    """A post-deploy call of `method` on the deployed `target_unit`."""

    target_unit: str
    method: str
    args: List[Any]

    @property
    def label(self) -> str:
        return f"{self.target_unit}.{self.method}"


def _single_entry(entry: Any, section: str) -> typing.Tuple[str, Any]:
    if not isinstance(entry, dict) or len(entry) != 1:
        raise PlanValidationError(f"Malformed '{section}' entry: {entry!r}")
    return next(iter(entry.items()))


def _get_contract_names(config: typing.Dict) -> List[str]:
    contract_names = list()
    for contract_info in config["contracts"]:
        if isinstance(contract_info, str):
            contract_names.append(contract_info)
        else:
            contract_name, _ = _single_entry(contract_info, "contracts")
            contract_names.append(contract_name)

    duplicates = sorted({name for name in contract_names if contract_names.count(name) > 1})
    if duplicates:
        raise PlanValidationError(f"Duplicate contract names in plan: {', '.join(duplicates)}")
    return contract_names


class DeploymentPlan:
    """
    Static, ordered description of the units to deploy and the actions that wire them.
    The order of `units` is a topological order of their references; this is
    checked once here, so the executor never has to resolve dependencies itself.
    """

    def __init__(
        self,
        name: str,
        units: List[ContractUnit],
        actions: List[Action],
        constants: Optional[Dict[str, Any]] = None,
        configuration: Optional[Dict[str, str]] = None,
        roles: Optional[Dict[str, bytes]] = None,
        artifacts_dir: Optional[Path] = None,
    ):
        self.name = name
        self.units = list(units)
        self.actions = list(actions)
        self.constants = dict(constants or {})
        self.configuration = OrderedDict(configuration or {})
        self.roles = dict(roles or {})
        self.artifacts_dir = artifacts_dir
        self.validate()

    def validate(self) -> None:
        """Checks that every reference points strictly backwards in the plan."""
        if not self.units:
            raise PlanValidationError("Deployment plan has no contracts.")
        deployed = set()
        for unit in self.units:
            if unit.name in deployed:
                raise PlanValidationError(f"Duplicate contract name in plan: {unit.name}")
            for dependency in unit.dependencies():
                if dependency not in deployed:
                    raise PlanValidationError(
                        f"{unit.name}: '{dependency}' is referenced before it is deployed."
                    )
            deployed.add(unit.name)

        for action in self.actions:
            if action.target_unit not in deployed:
                raise PlanValidationError(
                    f"{action.label}: target '{action.target_unit}' is not deployed by the plan."
                )
            for variable in _iter_variables(action.args):
                if isinstance(variable, ContractName) and variable.contract_name not in deployed:
                    raise PlanValidationError(
                        f"{action.label}: '{variable.contract_name}' is not deployed by the plan."
                    )

    @classmethod
    def from_yaml(cls, filepath: Path) -> "DeploymentPlan":
        with open(filepath, "r") as file:
            config = yaml.safe_load(file)
        return cls.from_config(config)

    @classmethod
    def from_config(cls, config: typing.Dict) -> "DeploymentPlan":
        if not isinstance(config, dict):
            raise PlanValidationError("Deployment plan must be a mapping.")
        if not config.get("contracts"):
            raise PlanValidationError("Deployment plan missing 'contracts' field.")

        deployment = config.get("deployment") or dict()
        name = deployment.get("name", "deployment")
        artifacts_dir = (deployment.get("artifacts") or dict()).get("dir")
        constants = config.get("constants") or dict()
        roles = dict()
        contract_names = _get_contract_names(config)

        units = list()
        for index, contract_info in enumerate(config["contracts"]):
            context = VariableContext(
                contract_names=contract_names,
                consumer=contract_names[index],
                available=contract_names[:index],
                constants=constants,
                roles=roles,
            )
            units.append(cls._process_unit(contract_info, context))

        actions = list()
        for action_info in config.get("actions") or list():
            target, calls = _single_entry(action_info, "actions")
            method, args = _single_entry(calls, "actions")
            context = VariableContext(
                contract_names=contract_names,
                consumer=f"{target}.{method}",
                available=contract_names,
                constants=constants,
                roles=roles,
            )
            if args is None:
                args = list()
            elif not isinstance(args, list):
                args = [args]
            actions.append(Action(target, method, [_process_raw_value(a, context) for a in args]))

        configuration = cls._process_configuration(config.get("configuration") or {}, constants)

        return cls(
            name=name,
            units=units,
            actions=actions,
            constants=constants,
            configuration=configuration,
            roles=roles,
            artifacts_dir=Path(artifacts_dir) if artifacts_dir else None,
        )

    @classmethod
    def _process_unit(cls, contract_info: Any, context: VariableContext) -> ContractUnit:
        if isinstance(contract_info, str):
            return ContractUnit(contract_info, OrderedDict())

        contract_name, contract_data = _single_entry(contract_info, "contracts")
        contract_data = contract_data or dict()
        if not isinstance(contract_data, dict):
            raise PlanValidationError(f"Malformed constructor parameter config for {contract_name}.")

        parameters = contract_data.get(CONTRACT_CONSTRUCTOR_PARAMETER_KEY) or OrderedDict()
        if not isinstance(parameters, dict):
            raise PlanValidationError(f"Malformed constructor parameter config for {contract_name}.")

        processed = OrderedDict()
        for param_name, value in parameters.items():
            processed[param_name] = _process_raw_value(value, context)
        return ContractUnit(contract_name, processed)

    @classmethod
    def _process_configuration(cls, raw: Dict, constants: Dict) -> "OrderedDict[str, str]":
        if not isinstance(raw, dict):
            raise PlanValidationError("Malformed 'configuration' section.")
        context = VariableContext(contract_names=[], consumer="configuration", constants=constants)
        configuration = OrderedDict()
        for key, value in raw.items():
            if Variable.is_variable(value):
                variable = value[len(VARIABLE_PREFIX) :]
                if TokenAmount.is_token_amount(variable):
                    amount = TokenAmount(variable, context).resolve(ledger=None)
                    configuration[key] = format_token_amount(amount)
                    continue
                if not Constant.is_constant(variable):
                    raise PlanValidationError(
                        f"configuration.{key}: only constants can be referenced, got {value!r}."
                    )
                value = Constant(variable, context).resolve(ledger=None)
            if isinstance(value, (dict, list)):
                raise PlanValidationError(f"configuration.{key}: value must be a scalar.")
            configuration[key] = str(value)
        return configuration

    @property
    def unit_names(self) -> List[str]:
        return [unit.name for unit in self.units]

    def get_unit(self, name: str) -> ContractUnit:
        for unit in self.units:
            if unit.name == name:
                return unit
        raise KeyError(name)

    def actions_for(self, name: str) -> List[Action]:
        """Post-deploy actions whose target is the named unit, in plan order."""
        return [action for action in self.actions if action.target_unit == name]

    @property
    def stages(self) -> List[str]:
        """Labels of every stage in execution order."""
        return [f"deploy {unit.name}" for unit in self.units] + [a.label for a in self.actions]
