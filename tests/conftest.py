from collections import OrderedDict

import pytest
from eth_utils import to_checksum_address

from capturgo_deployment.constants import DEFAULT_PLAN_FILEPATH
from capturgo_deployment.exceptions import PlanValidationError
from capturgo_deployment.gateway import ChainGateway
from capturgo_deployment.ledger import DeploymentLedger, NetworkInfo
from capturgo_deployment.plan import DeploymentPlan
from capturgo_deployment.reporter import Reporter

BASE_SEPOLIA = NetworkInfo(name="base-sepolia", chain_id=84532)
DEPLOYER = to_checksum_address("0x" + "d0" * 20)
EXPECTED_UNITS = [
    "BaseToken",
    "DataContribution",
    "DeviceRegistry",
    "DataMarketplace",
    "StakingRewards",
]


class TransactionFailed(Exception):
    """Stand-in for a gateway specific transaction error."""


class StubGateway(ChainGateway):
    """In-memory chain gateway that records every call made through it."""

    def __init__(self, network=BASE_SEPOLIA, fail_on_deploy=None, fail_on_call=None, missing=()):
        self.network = network
        self.missing = set(missing)
        self.fail_on_deploy = fail_on_deploy
        self.fail_on_call = fail_on_call
        self.calls = list()
        self.deployments = OrderedDict()
        self._nonce = 0

    @property
    def deploy_calls(self):
        return [c for c in self.calls if c[0] == "deploy"]

    @property
    def transact_calls(self):
        return [c for c in self.calls if c[0] == "call"]

    def prepare(self, unit_names):
        for unit_name in unit_names:
            if unit_name in self.missing:
                raise PlanValidationError(f"{unit_name}: no contract artifact")

    def deploy(self, unit_name, constructor_args):
        self.calls.append(("deploy", unit_name, list(constructor_args)))
        if len(self.deploy_calls) == self.fail_on_deploy:
            raise TransactionFailed(f"{unit_name} deployment reverted")
        self._nonce += 1
        address = to_checksum_address(f"0x{self._nonce:040x}")
        self.deployments[unit_name] = address
        return address

    def call(self, address, method, args):
        self.calls.append(("call", address, method, list(args)))
        if len(self.transact_calls) == self.fail_on_call:
            raise TransactionFailed(f"{method} reverted")
        return {"to": address, "method": method, "status": 1}

    def get_signer(self):
        return DEPLOYER

    def get_network(self):
        return self.network

    def get_balance(self, address):
        return 2 * 10**18


@pytest.fixture
def gateway():
    return StubGateway()


@pytest.fixture
def plan():
    return DeploymentPlan.from_yaml(DEFAULT_PLAN_FILEPATH)


@pytest.fixture
def ledger():
    return DeploymentLedger(network=BASE_SEPOLIA, deployer=DEPLOYER)


@pytest.fixture
def reporter():
    return Reporter(color=False)


@pytest.fixture
def artifacts_dir(tmp_path):
    return tmp_path / "deployments"


@pytest.fixture
def plan_config():
    """A small three unit plan as it would be loaded from YAML."""
    return {
        "deployment": {"name": "Test"},
        "constants": {"SUPPLY": 1000, "FEE": 10},
        "contracts": [
            {"Token": {"constructor": {"initialOwner": "$deployer"}}},
            {"Vault": {"constructor": {"_token": "$Token", "_fee": "$FEE"}}},
            "Registry",
        ],
        "actions": [
            {"Token": {"grantRole": ["$role:MINTER_ROLE", "$Vault"]}},
            {"Token": {"mint": ["$deployer", "$ether:SUPPLY"]}},
        ],
        "configuration": {"supply": "$SUPPLY", "note": "test"},
    }
