from pathlib import Path
from typing import Dict, List

from deployment.events import get_logger
from deployment.registry import ChainId, ContractName
from deployment.utils import _load_json, _write_json

log = get_logger()


class InitializationLedger:
    """
    Persisted record of the logical contracts whose setup sequence completed.

    An entry exists only once every setup step of its contract has been
    confirmed; entries are never removed or reset.
    """

    def __init__(
        self, filepath: Path, chain_id: ChainId, completed: Dict[ContractName, dict] = None
    ):
        self.filepath = filepath
        self.chain_id = chain_id
        self._completed = dict(completed or {})

    @classmethod
    def load(cls, filepath: Path, chain_id: ChainId) -> "InitializationLedger":
        completed = dict()
        if filepath.exists():
            data = _load_json(filepath)
            for name, record in data.get(str(chain_id), {}).items():
                if not record.get("completed"):
                    raise ValueError(
                        f"Ledger {filepath} holds an incomplete entry for {name}; "
                        "only completed initializations may be recorded."
                    )
                completed[name] = record
        log.debug("ledger.loaded", path=str(filepath), chain_id=chain_id, entries=len(completed))
        return cls(filepath=filepath, chain_id=chain_id, completed=completed)

    def __contains__(self, name: ContractName) -> bool:
        return self.is_initialized(name)

    def is_initialized(self, name: ContractName) -> bool:
        return name in self._completed

    @property
    def initialized(self) -> List[ContractName]:
        return list(self._completed)

    def mark_initialized(self, name: ContractName, steps: int) -> None:
        if name in self._completed:
            raise ValueError(f"{name} is already marked as initialized.")
        self._completed[name] = {"completed": True, "steps": steps}
        self.save()

    def save(self) -> Path:
        data = _load_json(self.filepath) if self.filepath.exists() else dict()
        data[str(self.chain_id)] = self._completed
        return _write_json(data, self.filepath)
