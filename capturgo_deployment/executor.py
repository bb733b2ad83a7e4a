from typing import Any, Optional

from capturgo_deployment.exceptions import ConfigurationError, DeploymentError, StageError
from capturgo_deployment.ledger import DeploymentLedger
from capturgo_deployment.plan import Action, ContractUnit, DeploymentPlan, resolve_params
from capturgo_deployment.reporter import StageEvent, StageStatus


class StageExecutor:
    """
    Drives a deployment plan against a chain gateway, one confirmed stage at a time.

    Units are deployed in plan order, then actions are run in plan order. The
    first failure stops the run; nothing after it is attempted.
    """

    def __init__(self, gateway, reporter=None):
        self.gateway = gateway
        self.reporter = reporter

    def _report(self, stage: str, status: StageStatus, detail: str = "") -> None:
        if self.reporter is not None:
            self.reporter.stage(StageEvent(stage, status, detail))

    def new_ledger(self, plan: DeploymentPlan) -> DeploymentLedger:
        return DeploymentLedger(
            network=self.gateway.get_network(),
            deployer=self.gateway.get_signer(),
            configuration=plan.configuration,
        )

    def deploy_unit(self, unit: ContractUnit, ledger: DeploymentLedger) -> str:
        stage = f"deploy {unit.name}"
        args = resolve_params(unit.constructor_args.values(), ledger)
        self._report(stage, StageStatus.STARTED)
        try:
            address = self.gateway.deploy(unit.name, args)
        except Exception as e:
            self._report(stage, StageStatus.FAILED, str(e))
            raise DeploymentError(unit, e) from e

        ledger.record(unit.name, address, constructor_args=args)
        self._report(stage, StageStatus.SUCCEEDED, ledger.resolve(unit.name))
        return ledger.resolve(unit.name)

    def run_action(self, action: Action, ledger: DeploymentLedger) -> Any:
        target = ledger.resolve(action.target_unit)
        args = resolve_params(action.args, ledger)
        self._report(action.label, StageStatus.STARTED)
        try:
            receipt = self.gateway.call(target, action.method, args)
        except Exception as e:
            self._report(action.label, StageStatus.FAILED, str(e))
            raise ConfigurationError(action, e) from e

        ledger.record_receipt(action.label, receipt)
        self._report(action.label, StageStatus.SUCCEEDED)
        return receipt

    def execute(
        self, plan: DeploymentPlan, ledger: Optional[DeploymentLedger] = None
    ) -> DeploymentLedger:
        """
        Runs every stage of the plan and returns the populated ledger.

        On a stage failure the raised StageError carries the partially
        populated ledger as `error.ledger`.
        """
        if ledger is None:
            ledger = self.new_ledger(plan)
        try:
            for unit in plan.units:
                self.deploy_unit(unit, ledger)
            for action in plan.actions:
                self.run_action(action, ledger)
        except StageError as e:
            e.ledger = ledger
            raise
        return ledger
