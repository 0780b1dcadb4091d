from typing import Any, Callable, Iterable, List, NamedTuple, Optional, Sequence

from deployment.errors import InitializationFailure, MissingDependency
from deployment.events import get_logger
from deployment.ledger import InitializationLedger
from deployment.registry import ContractName, ContractRegistry

log = get_logger()


class SetupStep(NamedTuple):
    """
    One blocking on-chain call of a setup sequence.

    `skip_if` is an optional read-only check answering whether the effect of
    the step is already on-chain. Steps that cannot be repeated (minting,
    deposits, one-shot initializers) carry one so that a sequence restarted
    from its first step does not apply them twice.
    """

    description: str
    call: Callable[[], Any]
    skip_if: Optional[Callable[[], bool]] = None


class InitializationTarget(NamedTuple):
    """The setup sequence of one logical contract and the contracts it reads."""

    name: ContractName
    steps: Sequence[SetupStep]
    requires: Sequence[ContractName] = ()


class InitializationOrchestrator:
    """
    Runs the one-time setup sequence of each logical contract at most once
    over the lifetime of the ledger, across separate runs.

    A sequence is all-or-nothing as far as the ledger is concerned: it is
    marked complete only after its last step confirmed, and a failed sequence
    runs again from its first step on the next run.
    """

    def __init__(self, registry: ContractRegistry, ledger: InitializationLedger):
        self.registry = registry
        self.ledger = ledger

    def check_dependencies(self, name: ContractName, requires: Iterable[ContractName] = ()) -> None:
        if name not in self.registry:
            raise MissingDependency(name)
        for dependency in requires:
            if dependency not in self.registry:
                raise MissingDependency(name, dependency)

    def ensure_initialized(
        self,
        name: ContractName,
        steps: Sequence[SetupStep],
        requires: Iterable[ContractName] = (),
    ) -> bool:
        """
        Executes `steps` in order unless `name` is already initialized.
        Returns True if the sequence ran, False if it was skipped.
        """
        self.check_dependencies(name, requires)

        event = log.bind(name=name)
        if self.ledger.is_initialized(name):
            event.info("init.skipped_already_initialized")
            return False

        steps = list(steps)
        event.info("init.started", steps=len(steps))
        for index, step in enumerate(steps):
            step_event = event.bind(step_index=index, step=step.description)
            try:
                if step.skip_if is not None and step.skip_if():
                    step_event.info("init.step_skipped", reason="already applied on-chain")
                    continue
                step_event.info("init.step_started")
                step.call()
            except Exception as e:
                step_event.error("init.step_failed", error=str(e))
                raise InitializationFailure(name, index, step.description, e) from e
            step_event.info("init.step_confirmed")

        self.ledger.mark_initialized(name, steps=len(steps))
        event.info("init.completed", steps=len(steps))
        return True

    def initialize_all(self, targets: Iterable[InitializationTarget]) -> List[ContractName]:
        """Initializes targets in the given order; returns the names that ran this time."""
        initialized = list()
        for target in targets:
            if self.ensure_initialized(target.name, target.steps, target.requires):
                initialized.append(target.name)
        return initialized
