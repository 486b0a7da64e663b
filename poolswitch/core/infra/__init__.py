"""
Contratos del runtime del proxy y resultado de activación.

Los providers (nginx) implementan estos contratos;
el core no depende de ningún provider concreto.
"""

from poolswitch.core.infra.contracts import (
    ActivationMode,
    ActivationResult,
    CheckResult,
    ProxyRuntime,
)

__all__ = ["ActivationMode", "ActivationResult", "CheckResult", "ProxyRuntime"]
