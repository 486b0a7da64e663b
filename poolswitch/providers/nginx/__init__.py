"""
Provider Nginx: runtime (check/start/reload) y probe de pools.
"""

from poolswitch.providers.nginx.runtime import NginxRuntime
from poolswitch.providers.nginx.probe import probe, format_probe_status

__all__ = ["NginxRuntime", "probe", "format_probe_status"]
