from types import SimpleNamespace
from unittest.mock import MagicMock

import click
import pytest
from eth_utils import to_checksum_address

from capturgo_deployment import gateway as gateway_module
from capturgo_deployment.exceptions import PlanValidationError
from capturgo_deployment.gateway import ApeGateway, is_local_network, verify_contracts
from capturgo_deployment.ledger import NetworkInfo
from capturgo_deployment.types import ChecksumAddress

TOKEN = "0x0000000000000000000000000000000000000001"


@pytest.fixture
def provider(monkeypatch):
    explorer = MagicMock()
    provider = SimpleNamespace(
        network=SimpleNamespace(name="sepolia", explorer=explorer),
        chain_id=84532,
        get_balance=MagicMock(return_value=5),
    )
    monkeypatch.setattr(gateway_module, "networks", SimpleNamespace(provider=provider))
    return provider


@pytest.fixture
def container():
    container = MagicMock()
    container.constructor.abi.inputs = [SimpleNamespace(name="initialOwner")]
    return container


@pytest.fixture
def lookups(monkeypatch, container):
    """Names passed to the contract container lookup."""
    names = list()

    def lookup(name):
        names.append(name)
        if name == "Missing":
            raise ValueError(f"No contract artifact named '{name}' in the project.")
        return container

    monkeypatch.setattr(gateway_module, "get_contract_container", lookup)
    return names


@pytest.fixture
def account():
    account = MagicMock()
    account.address = "0x00000000000000000000000000000000000000d0"
    account.deploy.return_value = MagicMock(address=TOKEN)
    return account


def test_network_signer_and_balance(provider, account):
    gateway = ApeGateway(account=account, autosign=True)
    assert gateway.get_network() == NetworkInfo(name="sepolia", chain_id=84532)
    assert gateway.get_signer() == account.address
    assert gateway.get_balance(account.address) == 5
    account.set_autosign.assert_called_once_with(True)


def test_deploy_and_call(provider, container, lookups, account):
    gateway = ApeGateway(account=account, autosign=True)

    address = gateway.deploy("BaseToken", [account.address])
    assert address == TOKEN
    account.deploy.assert_called_once_with(container, account.address)

    instance = account.deploy.return_value
    receipt = gateway.call(TOKEN, "mint", [account.address, 10])
    instance.mint.assert_called_once_with(account.address, 10, sender=account)
    assert receipt is instance.mint.return_value


def test_prepare_resolves_every_container_once(provider, lookups, account):
    gateway = ApeGateway(account=account, autosign=True)
    gateway.prepare(["BaseToken", "DataContribution"])
    assert lookups == ["BaseToken", "DataContribution"]

    gateway.deploy("BaseToken", [account.address])
    gateway.deploy("DataContribution", [TOKEN, account.address])
    assert lookups == ["BaseToken", "DataContribution"]


def test_prepare_reports_missing_artifact(provider, lookups, account):
    gateway = ApeGateway(account=account, autosign=True)
    with pytest.raises(PlanValidationError, match="Missing") as error:
        gateway.prepare(["BaseToken", "Missing", "StakingRewards"])
    assert isinstance(error.value.__cause__, ValueError)
    assert lookups == ["BaseToken", "Missing"]
    account.deploy.assert_not_called()


def test_deploy_asks_for_confirmation(monkeypatch, capsys, provider, lookups, account):
    prompts = list()

    def answer(prompt):
        prompts.append(prompt)
        return "y"

    monkeypatch.setattr("builtins.input", answer)
    gateway = ApeGateway(account=account, autosign=False)
    gateway.deploy("BaseToken", [account.address])

    account.deploy.assert_called_once()
    assert prompts == ["Proceed with deploy BaseToken Y/N? "]
    assert f"initialOwner={account.address}" in capsys.readouterr().out


def test_declined_deployment_aborts(monkeypatch, provider, lookups, account):
    monkeypatch.setattr("builtins.input", lambda prompt: "n")
    gateway = ApeGateway(account=account, autosign=False)
    with pytest.raises(SystemExit):
        gateway.deploy("BaseToken", [account.address])
    account.deploy.assert_not_called()


def test_declined_transaction_is_not_sent(monkeypatch, provider, lookups, account):
    monkeypatch.setattr("builtins.input", lambda prompt: "y")
    gateway = ApeGateway(account=account, autosign=False)
    gateway.deploy("BaseToken", [account.address])
    instance = account.deploy.return_value
    instance.contract_type.name = "BaseToken"

    monkeypatch.setattr("builtins.input", lambda prompt: "n")
    with pytest.raises(SystemExit):
        gateway.call(TOKEN, "mint", [account.address, 10])
    instance.mint.assert_not_called()


def test_gateway_errors_surface_unmodified(provider, lookups, account):
    class Reverted(Exception):
        pass

    account.deploy.side_effect = Reverted("out of gas")
    gateway = ApeGateway(account=account, autosign=True)
    with pytest.raises(Reverted):
        gateway.deploy("BaseToken", [account.address])


def test_named_args(container):
    named = ApeGateway._named_args(container.constructor.abi.inputs, ["0xabc", 5])
    assert list(named.items()) == [("initialOwner", "0xabc"), ("arg1", 5)]


def test_is_local_network(provider):
    assert is_local_network("local")
    assert is_local_network("hardhat")
    assert not is_local_network("base-sepolia")
    assert not is_local_network()


def test_verify_contracts(provider):
    verify_contracts([TOKEN])
    provider.network.explorer.publish_contract.assert_called_once_with(TOKEN)


def test_verify_without_explorer(provider):
    provider.network.explorer = None
    with pytest.raises(ValueError, match="No explorer"):
        verify_contracts([TOKEN])


def test_checksum_address_param_type():
    param_type = ChecksumAddress()
    address = "0x" + "ab" * 20
    assert param_type.convert(address, None, None) == to_checksum_address(address)
    with pytest.raises(click.BadParameter):
        param_type.convert("not-an-address", None, None)
