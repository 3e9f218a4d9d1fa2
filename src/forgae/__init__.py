"""Deploy Sophia contracts and call them through generated bindings."""

from forgae.catalog import FunctionArgument, FunctionCatalog, FunctionDescriptor, extract_from_aci, extract_from_source
from forgae.crypto import Keypair, generate_keypair, keypair_from_secret
from forgae.deployer import DeployedContract, Deployer, DeployState
from forgae.encoding import CallOptions
from forgae.errors import ForgaeError
from forgae.network import Network, get_network
from forgae.proxy import AlternateIdentityTable, ProxyFunctionTable

__version__ = "0.4.0"

__all__ = [
    "AlternateIdentityTable",
    "CallOptions",
    "DeployState",
    "DeployedContract",
    "Deployer",
    "ForgaeError",
    "FunctionArgument",
    "FunctionCatalog",
    "FunctionDescriptor",
    "Keypair",
    "Network",
    "ProxyFunctionTable",
    "extract_from_aci",
    "extract_from_source",
    "generate_keypair",
    "get_network",
    "keypair_from_secret",
]
