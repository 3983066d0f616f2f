from typing import Dict, Type

from opalforge.config import settings
from opalforge.rendering.base import CertificateRenderer
from opalforge.rendering.local import LocalRenderer
from opalforge.rendering.remote import RemoteRenderer

RENDERERS: Dict[str, Type[CertificateRenderer]] = {
    LocalRenderer.name: LocalRenderer,
    RemoteRenderer.name: RemoteRenderer,
}


def build_renderer(name: str) -> CertificateRenderer:
    try:
        return RENDERERS[name]()
    except KeyError:
        raise ValueError(f"Unknown renderer '{name}'. Expected one of: {', '.join(sorted(RENDERERS))}.")


def get_renderer() -> CertificateRenderer:
    """Dependency returning the rendering strategy selected by deployment settings."""
    return build_renderer(settings.renderer)
