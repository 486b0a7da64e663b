"""
Activación: validación del artefacto y controlador de switch.
"""

from poolswitch.core.activation.validator import ConfigValidator, StagedConfig, stage
from poolswitch.core.activation.controller import ActivationController

__all__ = ["ConfigValidator", "StagedConfig", "stage", "ActivationController"]
