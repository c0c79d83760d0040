"""Provider routing and telemetry for the optional external services."""

from .provider_registry import (  # noqa: F401
    ModelProvider,
    ProviderNotFoundError,
    get_provider,
    load_provider_registry,
)
from .policies import (  # noqa: F401
    PolicyNotFoundError,
    RoutingPolicy,
    load_policies,
)
from .router import ProviderRouter, ProviderUnavailableError, call_with_fallback  # noqa: F401
from .telemetry import (  # noqa: F401
    ProviderMetrics,
    TelemetryStore,
    get_telemetry_store,
)

__all__ = [
    "ModelProvider",
    "ProviderNotFoundError",
    "get_provider",
    "load_provider_registry",
    "RoutingPolicy",
    "PolicyNotFoundError",
    "load_policies",
    "ProviderRouter",
    "ProviderUnavailableError",
    "call_with_fallback",
    "ProviderMetrics",
    "TelemetryStore",
    "get_telemetry_store",
]
