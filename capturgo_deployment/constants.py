from pathlib import Path

import capturgo_deployment

#
# Filesystem
#

PACKAGE_DIR = Path(capturgo_deployment.__file__).parent
PLANS_DIR = PACKAGE_DIR / "plans"
DEFAULT_PLAN_FILEPATH = PLANS_DIR / "capturgo.yml"
# resolved against the working directory (the ape project root) at run time
ARTIFACTS_DIRNAME = "deployments"

#
# Networks
#

# networks for which explorer verification makes no sense
LOCAL_NETWORKS = ["local", "localhost", "hardhat"]

#
# Plan variables
#

VARIABLE_PREFIX = "$"
DEPLOYER_INDICATOR = "deployer"
ROLE_PREFIX = "role:"
ETHER_PREFIX = "ether:"

#
# Records
#

STANDARD_RECORD_JSON_FORMAT = {"indent": 2, "separators": (",", ": ")}

VERIFY_COMMAND = "ape run verify --network {network} {address}"
