from .envelope import Envelope, MalformedPayloadError, decode_envelope
from .lcd import CosmosLcdClient, JsonGetter
from .transport import (
    TransportChain,
    TransportExhaustedError,
    build_transport_chain,
)

__all__ = [
    "CosmosLcdClient",
    "Envelope",
    "JsonGetter",
    "MalformedPayloadError",
    "TransportChain",
    "TransportExhaustedError",
    "build_transport_chain",
    "decode_envelope",
]
