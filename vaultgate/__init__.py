"""vaultgate: signing proxy for a custodial vault API."""

from .config import VaultGateConfig, load_config
from .contracts import OutboundRequest, ProxyResult, TransportResponse
from .dispatch import Dispatcher, serialize_body
from .security import CredentialMinter, RequestAssertion, SigningIdentity
from .transports import get_transport

__version__ = "0.1.0"
__all__ = [
    "CredentialMinter",
    "Dispatcher",
    "OutboundRequest",
    "ProxyResult",
    "RequestAssertion",
    "SigningIdentity",
    "TransportResponse",
    "VaultGateConfig",
    "get_transport",
    "load_config",
    "serialize_body",
]
