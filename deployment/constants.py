from pathlib import Path

import deployment

#
# Filesystem
#

DEPLOYMENT_DIR = Path(deployment.__file__).parent
CONSTRUCTOR_PARAMS_DIR = DEPLOYMENT_DIR / "constructor_params"
ARTIFACTS_DIR = DEPLOYMENT_DIR / "artifacts"

LEDGER_SUFFIX = ".initialized.json"

#
# Scenarios
#

BASE_CREDIT_POOL = "base-credit-pool"
GOERLI_BASE_CREDIT_POOL = "goerli-base-credit-pool"
RECEIVABLE_FACTORING_POOL = "receivable-factoring-pool"

SUPPORTED_SCENARIOS = [BASE_CREDIT_POOL, GOERLI_BASE_CREDIT_POOL, RECEIVABLE_FACTORING_POOL]

#
# Contracts
#

PROXY_CONTRACT_TYPE = "TransparentUpgradeableProxy"

# OpenZeppelin 4.x Initializable keeps its version counter in the first storage slot
INITIALIZABLE_SLOT = 0
