"""
Errores del controlador de pools.

El core solo define excepciones; la CLI se encarga del formato de salida
y del código de salida (exit_code) de cada categoría.
"""

from typing import Optional


class PoolSwitchError(Exception):
    """Error base de poolswitch."""

    category = "PoolSwitchError"
    exit_code = 1

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidPoolSelection(PoolSwitchError):
    """El pool pedido no es blue ni green. No hay efectos secundarios."""

    category = "InvalidPoolSelection"
    exit_code = 10


class UnknownPool(PoolSwitchError):
    """El registry no conoce el pool. Fallo de consistencia interna."""

    category = "UnknownPool"
    exit_code = 11


class ValidationFailed(PoolSwitchError):
    """El checker del proxy rechazó el artefacto; la configuración previa sigue activa."""

    category = "ValidationFailed"
    exit_code = 12


class ReloadFailed(PoolSwitchError):
    """
    El artefacto ya se reemplazó pero no se pudo señalizar (o arrancar) el proxy.
    Disco y proceso divergen hasta el próximo reload.
    """

    category = "ReloadFailed"
    exit_code = 13


class ConfigError(PoolSwitchError):
    """Entradas declaradas inválidas (pools, YAML, variables de entorno)."""

    category = "ConfigError"
    exit_code = 14


class UpstreamUnavailable(PoolSwitchError):
    """
    Upstream caído en runtime. Lo absorbe el failover pasivo de Nginx;
    el controlador nunca lo lanza.
    """

    category = "UpstreamUnavailable"
    exit_code = 15


class InfrastructureError(PoolSwitchError):
    """
    Fallo de E/S del host (directorio del artefacto o de estado no escribible,
    disco lleno). No es un rechazo del checker: la config no llegó a evaluarse
    o no se pudo instalar.
    """

    category = "InfrastructureError"
    exit_code = 16
