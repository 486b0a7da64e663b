"""
Core: lógica de negocio pura.

ENFORCEMENT (arquitectura limpia):
- Este paquete NO debe importar poolswitch.cli ni poolswitch.providers.*.
- El proxy concreto entra por el contrato ProxyRuntime (core.infra.contracts).
- Los providers y la CLI importan desde core; nunca al revés.
"""

from poolswitch.core.errors import (
    PoolSwitchError,
    InvalidPoolSelection,
    UnknownPool,
    ValidationFailed,
    ReloadFailed,
    ConfigError,
    UpstreamUnavailable,
    InfrastructureError,
)

__all__ = [
    "PoolSwitchError",
    "InvalidPoolSelection",
    "UnknownPool",
    "ValidationFailed",
    "ReloadFailed",
    "ConfigError",
    "UpstreamUnavailable",
    "InfrastructureError",
]
