from pathlib import Path

import fantium_deployment

#
# Filesystem
#

DEPLOYMENT_DIR = Path(fantium_deployment.__file__).parent
PROJECT_ROOT = DEPLOYMENT_DIR.parent
CONSTRUCTOR_PARAMS_DIR = DEPLOYMENT_DIR / "constructor_params"
ADDRESSES_DIR = DEPLOYMENT_DIR / "addresses"
ABI_EXPORT_DIR = PROJECT_ROOT / "data" / "abi"
DOTENV_FILEPATH = PROJECT_ROOT / ".env"

#
# Environment
#

RPC_URL_ENVVAR = "POLYGON_MUMBAI_RPC_PROVIDER"
PRIVATE_KEY_ENVVAR = "PRIVATE_KEY"
EXPLORER_API_KEY_ENVVAR = "POLYGONSCAN_API_KEY"
DEPLOYER_PASSPHRASE_ENVVAR = "DEPLOYER_PASSPHRASE"

DEPLOYER_ACCOUNT_ALIAS = "fantium-deployer"

#
# Networks
#

LOCAL_BLOCKCHAIN_ENVIRONMENTS = ["local"]

#
# Contracts
#

OZ_DEPENDENCY_NAME = "openzeppelin"
OZ_DEPENDENCY_VERSION = "5.0.0"

# EIP1967 slots - https://eips.ethereum.org/EIPS/eip-1967
EIP1967_IMPLEMENTATION_SLOT = 0x360894A13BA1A3210667C828492DB98DCA3E2076CC3735A920A3CA505D382BBC
EIP1967_ADMIN_SLOT = 0xB53127684A568B3173AE13B9F8A6016E243E63B6E8EE1178D6A717850B5D6103

# EIP-170
MAX_CONTRACT_SIZE = 24576

#
# Proxies
#

UUPS = "uups"
TRANSPARENT = "transparent"

SUPPORTED_PROXY_KINDS = [UUPS, TRANSPARENT]

DEFAULT_PROXY_KIND = UUPS
DEFAULT_INITIALIZER = "initialize"

# methods a UUPS implementation must keep exposing, or the proxy can never be upgraded again
UUPS_REQUIRED_METHODS = ("upgradeToAndCall", "proxiableUUID")
