from enum import Enum
from typing import Dict, Iterable, List, Sequence

from ape.api import AccountAPI

from deployment.errors import SignerConfigurationError


class SignerRole(Enum):
    """Protocol roles, in the order they are taken from the network account list."""

    DEPLOYER = "deployer"
    TREASURY = "treasury"
    EA_SERVICE = "ea_service"
    PDS_SERVICE = "pds_service"
    EVALUATION_AGENT = "evaluation_agent"
    PROXY_OWNER = "proxy_owner"

    @property
    def index(self) -> int:
        return list(SignerRole).index(self)

    @classmethod
    def is_role(cls, value: str) -> bool:
        return value in {role.value for role in cls}


class SignerRoles:
    """The accounts bound to each role for the duration of one run."""

    def __init__(self, accounts: Dict[SignerRole, AccountAPI]):
        self.accounts = dict(accounts)

    def __contains__(self, role: SignerRole) -> bool:
        return role in self.accounts

    def __getitem__(self, role: SignerRole) -> AccountAPI:
        try:
            return self.accounts[role]
        except KeyError:
            raise SignerConfigurationError(f"No account is bound to the {role.value} role.")

    @property
    def deployer(self) -> AccountAPI:
        return self[SignerRole.DEPLOYER]

    @property
    def treasury(self) -> AccountAPI:
        return self[SignerRole.TREASURY]

    @property
    def ea_service(self) -> AccountAPI:
        return self[SignerRole.EA_SERVICE]

    @property
    def pds_service(self) -> AccountAPI:
        return self[SignerRole.PDS_SERVICE]

    @property
    def evaluation_agent(self) -> AccountAPI:
        return self[SignerRole.EVALUATION_AGENT]

    @property
    def proxy_owner(self) -> AccountAPI:
        return self[SignerRole.PROXY_OWNER]

    @classmethod
    def from_accounts(
        cls, accounts: Sequence[AccountAPI], required: Iterable[SignerRole] = tuple(SignerRole)
    ) -> "SignerRoles":
        """
        Binds roles to accounts by fixed index. Every role up to the highest
        required index must have an account; roles beyond the available
        accounts are left unbound.
        """
        required: List[SignerRole] = list(required)
        needed = max((role.index for role in required), default=-1) + 1
        if len(accounts) < needed:
            missing = [role.value for role in required if role.index >= len(accounts)]
            raise SignerConfigurationError(
                f"{needed} accounts are needed for the signer roles, "
                f"but only {len(accounts)} are available (missing: {', '.join(missing)})."
            )
        bound = {role: accounts[role.index] for role in SignerRole if role.index < len(accounts)}
        return cls(accounts=bound)
