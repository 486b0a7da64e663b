"""
Render: generación pura del nginx.conf y lectura inversa del artefacto.
"""

from poolswitch.core.render.options import ProxyOptions
from poolswitch.core.render.renderer import (
    RenderedConfig,
    render,
    POOL_HEADER,
    RELEASE_HEADER,
    PROXY_HEADER,
)
from poolswitch.core.render.parser import RenderedSummary, parse_rendered, parse_artifact

__all__ = [
    "ProxyOptions",
    "RenderedConfig",
    "render",
    "POOL_HEADER",
    "RELEASE_HEADER",
    "PROXY_HEADER",
    "RenderedSummary",
    "parse_rendered",
    "parse_artifact",
]
