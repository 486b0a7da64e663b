"""
Runtime: rutas de estado y persistencia del historial de switches.

El estado real NUNCA vive dentro del repo; se escribe en /var/lib/poolswitch/.
"""

from poolswitch.core.runtime.resolver import state_root, artifact_path
from poolswitch.core.runtime.state import SwitchStateStore, switch_lock, write_atomic

__all__ = ["state_root", "artifact_path", "SwitchStateStore", "switch_lock", "write_atomic"]
