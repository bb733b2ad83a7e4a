from pathlib import Path
from typing import Optional

from capturgo_deployment.exceptions import PersistenceError
from capturgo_deployment.executor import StageExecutor
from capturgo_deployment.plan import DeploymentPlan
from capturgo_deployment.registry import check_writable, write_record
from capturgo_deployment.reporter import Reporter


def run_deployment(
    plan: DeploymentPlan,
    gateway,
    artifacts_dir: Optional[Path] = None,
    reporter: Optional[Reporter] = None,
    overwrite: bool = False,
) -> Path:
    """
    Deploys and configures every unit of the plan, then persists the record.

    Nothing is sent unless the record location is writable and the gateway
    can deploy every unit. A failed stage propagates as a StageError and
    nothing is persisted. A
    persistence failure after a successful run dumps the ledger before the
    PersistenceError (with `.ledger` attached) is re-raised.
    """
    reporter = reporter or Reporter()
    artifacts_dir = artifacts_dir or plan.artifacts_dir

    network = gateway.get_network()
    deployer = gateway.get_signer()
    # refuse before spending gas on a run whose record could not be kept
    record_path = check_writable(network.chain_id, artifacts_dir, overwrite)
    gateway.prepare(plan.unit_names)
    reporter.preamble(
        network=network,
        deployer=deployer,
        balance=gateway.get_balance(deployer),
        plan_name=plan.name,
        record_path=record_path,
    )

    executor = StageExecutor(gateway=gateway, reporter=reporter)
    ledger = executor.execute(plan)

    record = ledger.snapshot()
    try:
        record_path = write_record(record, artifacts_dir, overwrite=overwrite)
    except PersistenceError as e:
        e.ledger = ledger
        reporter.dump_ledger(ledger)
        raise

    reporter.summary(ledger, record_path)
    return record_path
