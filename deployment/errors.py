class DeploymentError(Exception):
    """Base class for every failure that aborts a deployment run."""


class SignerConfigurationError(DeploymentError):
    """Raised when the network exposes fewer accounts than the run needs."""


class DeploymentConfigError(DeploymentError, ValueError):
    """Raised when the deployment parameters are malformed or unresolvable."""


class DeploymentFailure(DeploymentError):
    """Raised when a contract-creation transaction reverts or fails to confirm."""

    def __init__(self, name: str, cause: BaseException):
        self.name = name
        self.cause = cause
        super().__init__(f"Deployment of {name} failed: {cause}")


class AlreadyDeployed(DeploymentError):
    """Raised when a logical contract is deployed again without an explicit redeploy."""

    def __init__(self, name: str, address: str):
        self.name = name
        self.address = address
        super().__init__(
            f"{name} is already deployed at {address}; pass redeploy=True to overwrite it."
        )


class MissingDependency(DeploymentError):
    """Raised when a step needs a logical contract that is not in the registry yet."""

    def __init__(self, name: str, dependency: str = None):
        self.name = name
        self.dependency = dependency or name
        if self.dependency == name:
            message = f"{name} is not deployed."
        else:
            message = f"{name} requires {self.dependency}, which is not deployed."
        super().__init__(message)


class InitializationFailure(DeploymentError):
    """
    Raised when a setup step fails. The ledger is left untouched so that the
    whole step sequence runs again, from the first step, on the next run.
    """

    def __init__(self, name: str, step_index: int, step: str, cause: BaseException):
        self.name = name
        self.step_index = step_index
        self.step = step
        self.cause = cause
        super().__init__(
            f"Initialization of {name} failed at step {step_index} ({step}): {cause}"
        )
