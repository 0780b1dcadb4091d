import typing
from abc import ABC, abstractmethod
from collections import OrderedDict, namedtuple
from pathlib import Path
from typing import Any, List, NamedTuple, Optional, Set

import yaml
from eth_typing import ChecksumAddress
from eth_utils import is_address, to_checksum_address

from deployment.errors import DeploymentConfigError
from deployment.registry import ContractRegistry
from deployment.signers import SignerRole, SignerRoles
from deployment.utils import _load_yaml, get_artifact_filepath

CONTRACT_CONSTRUCTOR_PARAMETER_KEY = "constructor"
CONTRACT_PROXY_PARAMETER_KEY = "proxy"
CONTRACT_TYPE_KEY = "contract_type"
CONTRACT_SIGNER_KEY = "signer"
CONTRACT_GAS_LIMIT_KEY = "gas_limit"
PROXY_ADMIN_KEY = "admin"

CONTRACT_KEYS = {
    CONTRACT_CONSTRUCTOR_PARAMETER_KEY,
    CONTRACT_PROXY_PARAMETER_KEY,
    CONTRACT_TYPE_KEY,
    CONTRACT_SIGNER_KEY,
    CONTRACT_GAS_LIMIT_KEY,
}


class VariableContext:
    """What a variable may refer to while the parameters file is being read."""

    def __init__(
        self,
        contract_names: List[str],
        contract_name: str,
        constants: typing.Dict[str, Any] = None,
    ):
        # only contracts listed before this one; the file order is the deployment order
        self.contract_names = contract_names or list()
        self.contract_name = contract_name
        self.constants = constants or dict()
        self.roles: Set[SignerRole] = set()


class ResolutionContext(NamedTuple):
    """What a variable resolves against at deployment time."""

    registry: ContractRegistry
    roles: SignerRoles
    constants: typing.Dict[str, Any]


# Variables


class Variable(ABC):
    VARIABLE_PREFIX = "$"

    @abstractmethod
    def resolve(self, context: ResolutionContext) -> Any:
        raise NotImplementedError

    @classmethod
    def is_variable(cls, param: Any) -> bool:
        """Returns True if the param is a variable."""
        result = isinstance(param, str) and param.startswith(cls.VARIABLE_PREFIX)
        return result


class SignerAccount(Variable):
    """The address of the account bound to a signer role, e.g. `$treasury`."""

    def __init__(self, role_name: str, context: VariableContext):
        self.role = SignerRole(role_name)
        context.roles.add(self.role)

    @classmethod
    def is_signer(cls, value: str) -> bool:
        return SignerRole.is_role(value)

    def resolve(self, context: ResolutionContext) -> Any:
        return context.roles[self.role].address


class Constant(Variable):
    def __init__(self, constant_name: str, context: VariableContext):
        try:
            self.constant_value = context.constants[constant_name]
        except KeyError:
            raise DeploymentConfigError(f"Constant '{constant_name}' not found in deployment file.")

    def resolve(self, context: ResolutionContext) -> Any:
        return self.constant_value


class ContractName(Variable):
    """The callable address of an earlier logical contract, e.g. `$USDC`."""

    def __init__(self, contract_name: str, context: VariableContext):
        if contract_name not in context.contract_names:
            raise DeploymentConfigError(
                f"{context.contract_name} references ${contract_name}, which is neither a "
                "constant nor a contract listed before it in the deployment file."
            )
        self.contract_name = contract_name

    def resolve(self, context: ResolutionContext) -> Any:
        # proxies resolve to the proxy address, never to the implementation
        return context.registry.address(self.contract_name)


def _resolve_param(value: Any, context: ResolutionContext) -> Any:
    """Resolves a single parameter value or a list of parameter values."""
    if isinstance(value, list):
        return [_resolve_param(v, context) for v in value]

    if isinstance(value, Variable):
        return value.resolve(context)

    return value  # literally a value


def _resolve_params(parameters: OrderedDict, context: ResolutionContext) -> OrderedDict:
    resolved_parameters = OrderedDict()
    for name, value in parameters.items():
        resolved_parameters[name] = _resolve_param(value, context)

    return resolved_parameters


def _variable_from_value(variable: Any, context: VariableContext) -> Variable:
    variable = variable.strip(Variable.VARIABLE_PREFIX)
    if SignerAccount.is_signer(variable):
        return SignerAccount(variable, context)
    elif variable in context.constants:
        return Constant(variable, context)
    else:
        return ContractName(variable, context)


def _process_raw_value(value: Any, variable_context: VariableContext) -> Any:
    if isinstance(value, list):
        return [_process_raw_value(v, variable_context) for v in value]

    if Variable.is_variable(value):
        value = _variable_from_value(value, variable_context)

    return value


def _process_raw_values(values: OrderedDict, variable_context: VariableContext) -> OrderedDict:
    processed_parameters = OrderedDict()
    for name, value in values.items():
        processed_parameters[name] = _process_raw_value(value, variable_context)

    return processed_parameters


def _get_contract_names(config: typing.Dict) -> List[str]:
    contract_names = list()
    for contract_info in config["contracts"]:
        if isinstance(contract_info, str):
            contract_names.append(contract_info)
        elif isinstance(contract_info, dict) and len(contract_info) == 1:
            contract_names.extend(list(contract_info.keys()))
        else:
            raise DeploymentConfigError("Malformed contracts section in deployment file.")

    duplicates = {name for name in contract_names if contract_names.count(name) > 1}
    if duplicates:
        raise DeploymentConfigError(
            f"Logical contract names must be unique; duplicated: {', '.join(sorted(duplicates))}"
        )
    return contract_names


class ProxySpec(NamedTuple):
    """Deploy behind a TransparentUpgradeableProxy administered by `admin`."""

    admin: Any  # Variable or literal address

    def resolve_admin(self, context: ResolutionContext) -> ChecksumAddress:
        admin = _resolve_param(self.admin, context)
        if not is_address(admin):
            raise DeploymentConfigError(f"Proxy admin '{admin}' is not an address.")
        return to_checksum_address(admin)


class LogicalContract(NamedTuple):
    """A contract as the deployment knows it: its registry name plus how to create it."""

    name: str
    contract_type: str
    constructor_params: OrderedDict
    signer: SignerRole = SignerRole.DEPLOYER
    proxy: Optional[ProxySpec] = None
    gas_limit: Optional[int] = None

    def resolve_constructor_args(self, context: ResolutionContext) -> List[Any]:
        return list(_resolve_params(self.constructor_params, context).values())


def _process_signer(
    value: Any, contract_name: str, variable_context: VariableContext
) -> SignerRole:
    if not Variable.is_variable(value):
        raise DeploymentConfigError(
            f"Signer of {contract_name} must be a role variable such as '$deployer'; got {value}."
        )
    variable = _variable_from_value(value, variable_context)
    if not isinstance(variable, SignerAccount):
        raise DeploymentConfigError(f"Signer of {contract_name} is not a signer role: {value}.")
    return variable.role


def _process_contract(
    contract_name: str,
    contract_data: typing.Dict,
    variable_context: VariableContext,
) -> LogicalContract:
    unknown = set(contract_data) - CONTRACT_KEYS
    if unknown:
        raise DeploymentConfigError(
            f"Unknown keys for {contract_name}: {', '.join(sorted(unknown))}"
        )

    constructor_params = OrderedDict()
    if CONTRACT_CONSTRUCTOR_PARAMETER_KEY in contract_data:
        raw_params = contract_data[CONTRACT_CONSTRUCTOR_PARAMETER_KEY] or dict()
        if not isinstance(raw_params, dict):
            raise DeploymentConfigError(f"Malformed constructor parameters for {contract_name}.")
        constructor_params = _process_raw_values(OrderedDict(raw_params), variable_context)

    signer = SignerRole.DEPLOYER
    if CONTRACT_SIGNER_KEY in contract_data:
        signer = _process_signer(
            contract_data[CONTRACT_SIGNER_KEY], contract_name, variable_context
        )
    variable_context.roles.add(signer)

    proxy = None
    if CONTRACT_PROXY_PARAMETER_KEY in contract_data:
        proxy_data = contract_data[CONTRACT_PROXY_PARAMETER_KEY] or dict()
        admin = proxy_data.get(PROXY_ADMIN_KEY, f"${SignerRole.PROXY_OWNER.value}")
        proxy = ProxySpec(admin=_process_raw_value(admin, variable_context))

    gas_limit = contract_data.get(CONTRACT_GAS_LIMIT_KEY)
    if gas_limit is not None:
        gas_limit = int(gas_limit)

    return LogicalContract(
        name=contract_name,
        contract_type=contract_data.get(CONTRACT_TYPE_KEY, contract_name),
        constructor_params=constructor_params,
        signer=signer,
        proxy=proxy,
        gas_limit=gas_limit,
    )


class DeploymentParameters:
    """
    Represents a deployment parameters file: the ordered logical contracts,
    their constructor and proxy parameters, the constants and where the
    registry artifacts live.
    """

    def __init__(
        self,
        name: str,
        chain_id: int,
        contracts: "OrderedDict[str, LogicalContract]",
        constants: typing.Dict[str, Any],
        registry_filepath: Path,
        account_aliases: List[str] = None,
        verify: bool = False,
        roles: Set[SignerRole] = None,
        path: Path = None,
    ):
        self.name = name
        self.chain_id = chain_id
        self.contracts = contracts
        self.constants = constants
        self.registry_filepath = registry_filepath
        self.account_aliases = account_aliases or list()
        self.verify = verify
        self.roles = roles or {SignerRole.DEPLOYER}
        self.path = path

        # Little trick to expose constants as attributes (e.g., params.constant_values.FOO)
        _Constants = namedtuple("_Constants", list(constants))
        self.constant_values = _Constants(**constants)

    def __contains__(self, name: str) -> bool:
        return name in self.contracts

    def __getitem__(self, name: str) -> LogicalContract:
        try:
            return self.contracts[name]
        except KeyError:
            raise DeploymentConfigError(f"{name} is not listed in deployment file {self.path}.")

    @property
    def contract_names(self) -> List[str]:
        return list(self.contracts)

    @classmethod
    def from_config(cls, config: typing.Dict, path: Path = None) -> "DeploymentParameters":
        if not isinstance(config, dict):
            raise DeploymentConfigError("Parameters file must be a mapping.")

        deployment = config.get("deployment")
        if not deployment:
            raise DeploymentConfigError("deployment is not set in params file.")
        if not isinstance(deployment, dict):
            raise DeploymentConfigError("deployment section of params file must be a mapping.")

        chain_id = deployment.get("chain_id")
        if not chain_id:
            raise DeploymentConfigError("chain_id is not set in params file.")

        if not config.get("contracts"):
            raise DeploymentConfigError("Parameters file missing 'contracts' field.")
        if not isinstance(config["contracts"], list):
            raise DeploymentConfigError("contracts section of params file must be a list.")

        constants = config.get("constants") or dict()
        contract_names = _get_contract_names(config)

        contracts = OrderedDict()
        roles = set()
        for position, contract_info in enumerate(config["contracts"]):
            contract_name = contract_names[position]
            if isinstance(contract_info, str):
                contract_data = dict()
            else:
                contract_data = contract_info[contract_name]
                if contract_data is not None and not isinstance(contract_data, dict):
                    raise DeploymentConfigError(
                        f"Entry of {contract_name} must be a mapping of options; "
                        f"got {contract_data!r}."
                    )
            variable_context = VariableContext(
                contract_names=contract_names[:position],
                contract_name=contract_name,
                constants=constants,
            )
            contracts[contract_name] = _process_contract(
                contract_name, contract_data or dict(), variable_context
            )
            roles |= variable_context.roles

        try:
            registry_filepath = get_artifact_filepath(config=config)
        except ValueError as e:
            raise DeploymentConfigError(str(e)) from e

        return cls(
            name=deployment.get("name", registry_filepath.stem),
            chain_id=int(chain_id),
            contracts=contracts,
            constants=constants,
            registry_filepath=registry_filepath,
            account_aliases=list(config.get("accounts") or []),
            verify=bool(deployment.get("verify", False)),
            roles=roles,
            path=path,
        )

    @classmethod
    def from_yaml(cls, filepath: Path) -> "DeploymentParameters":
        try:
            config = _load_yaml(filepath)
        except (OSError, yaml.YAMLError) as e:
            raise DeploymentConfigError(f"Cannot read parameters file {filepath}: {e}") from e
        return cls.from_config(config=config, path=filepath)

    def validate_chain_id(self, chain_id: int, live: bool) -> None:
        """Live deployments must target the chain the parameters were written for."""
        if live and chain_id != self.chain_id:
            raise DeploymentConfigError(
                f"chain_id in params file ({self.chain_id}) does not match "
                f"chain_id of current network ({chain_id})."
            )
