from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Protocol

from runattest.config import (
    PAYLOAD_TYPE_INTOTO,
    PAYLOAD_TYPE_SIMPLESIGNING,
    PAYLOAD_TYPE_SLSA_V1,
    PAYLOAD_TYPE_SLSA_V2ALPHA1,
    PAYLOAD_TYPE_SLSA_V2ALPHA2,
    PAYLOAD_TYPE_SLSA_V2ALPHA3,
    PAYLOAD_TYPE_SLSA_V2ALPHA4,
    PAYLOAD_TYPE_TEKTON,
    Config,
)
from runattest.errors import UnsupportedPayloadTypeError
from runattest.formats import (
    simplesigning,
    slsa_v1,
    slsa_v2alpha1,
    slsa_v2alpha2,
    slsa_v2alpha3,
    slsa_v2alpha4,
    tekton,
)


class Payloader(Protocol):
    payload_type: str
    wrap: bool

    def create_payload(self, obj: Any) -> Dict[str, Any]: ...


PayloaderFactory = Callable[[Optional[Config]], Payloader]


class FormatterRegistry:
    """Maps payload type names to the factories that build their payloaders."""

    def __init__(self, factories: Optional[Dict[str, PayloaderFactory]] = None):
        self._factories: Dict[str, PayloaderFactory] = dict(factories or {})

    def register(self, payload_type: str, factory: PayloaderFactory) -> None:
        self._factories[payload_type] = factory

    def payload_types(self) -> List[str]:
        return sorted(self._factories)

    def __contains__(self, payload_type: object) -> bool:
        return payload_type in self._factories

    def get(self, payload_type: str, cfg: Optional[Config] = None) -> Payloader:
        factory = self._factories.get(payload_type)
        if factory is None:
            raise UnsupportedPayloadTypeError(payload_type)
        return factory(cfg)


def default_registry() -> FormatterRegistry:
    return FormatterRegistry(
        {
            PAYLOAD_TYPE_INTOTO: lambda cfg: slsa_v1.InTotoIte6.from_config(cfg, PAYLOAD_TYPE_INTOTO),
            PAYLOAD_TYPE_SLSA_V1: lambda cfg: slsa_v1.InTotoIte6.from_config(cfg, PAYLOAD_TYPE_SLSA_V1),
            PAYLOAD_TYPE_SLSA_V2ALPHA1: slsa_v2alpha1.Slsa,
            PAYLOAD_TYPE_SLSA_V2ALPHA2: slsa_v2alpha2.Slsa,
            PAYLOAD_TYPE_SLSA_V2ALPHA3: slsa_v2alpha3.Slsa,
            PAYLOAD_TYPE_SLSA_V2ALPHA4: slsa_v2alpha4.Slsa,
            PAYLOAD_TYPE_TEKTON: tekton.Tekton,
            PAYLOAD_TYPE_SIMPLESIGNING: simplesigning.SimpleSigning,
        }
    )


def create_payload(obj: Any, payload_type: str, cfg: Optional[Config] = None) -> Dict[str, Any]:
    return default_registry().get(payload_type, cfg).create_payload(obj)
