class OrchestrationError(Exception):
    """Base class for all deployment orchestration errors."""


class PlanValidationError(OrchestrationError, ValueError):
    """Raised when a deployment plan is malformed; no transaction has been sent."""


class StageError(OrchestrationError):
    """Raised when a deploy or configure stage fails on-chain."""

    ledger = None  # partially populated ledger, attached by the executor

    def __init__(self, stage: str, cause: BaseException):
        self.stage = stage
        self.cause = cause
        super().__init__(f"Stage '{stage}' failed: {cause}")


class DeploymentError(StageError):
    """Raised when a contract deployment is rejected, reverts or times out."""

    def __init__(self, unit, cause: BaseException):
        self.unit = unit
        super().__init__(f"deploy {unit.name}", cause)


class ConfigurationError(StageError):
    """Raised when a post-deploy configuration call fails."""

    def __init__(self, action, cause: BaseException):
        self.action = action
        super().__init__(action.label, cause)


class LedgerError(OrchestrationError):
    """Internal consistency violation of the deployment ledger."""


class DuplicateUnitError(LedgerError):
    """Raised when a unit name is recorded twice."""


class UnresolvedReferenceError(LedgerError, KeyError):
    """Raised when a name is resolved before it has been recorded."""

    def __str__(self):
        return str(self.args[0]) if self.args else ""


class FrozenLedgerError(LedgerError):
    """Raised when recording into a ledger that has already been snapshotted."""


class PersistenceError(OrchestrationError):
    """Raised when a deployment record cannot be written."""

    ledger = None  # in-memory ledger of a run whose record was lost
