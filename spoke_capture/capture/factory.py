from __future__ import annotations

from spoke_capture.capture.frame import DisplayMetrics
from spoke_capture.capture.surfaces import CaptureSurface, MssCaptureSurface, SyntheticCaptureSurface
from spoke_capture.core.config import Settings

_DEFAULT_SYNTHETIC_METRICS = DisplayMetrics(width=720, height=1280)


def _display_metrics(settings: Settings) -> DisplayMetrics | None:
    if settings.display_width and settings.display_height:
        return DisplayMetrics(
            width=settings.display_width,
            height=settings.display_height,
            density_dpi=settings.display_density_dpi,
        )
    return None


def get_capture_surface(settings: Settings) -> CaptureSurface:
    """Return the configured capture surface.

    CAPTURE_PROVIDER options:
        mss        — live desktop capture
        synthetic  — generated frames with padded rows (dev/test)
    """
    provider = settings.capture_provider.lower().strip()
    metrics = _display_metrics(settings)

    if provider == "mss":
        return MssCaptureSurface(metrics=metrics, monitor=settings.capture_monitor)

    if provider == "synthetic":
        return SyntheticCaptureSurface(
            metrics=metrics or _DEFAULT_SYNTHETIC_METRICS,
            image_path=settings.synthetic_image_path,
        )

    raise ValueError(f"Unknown CAPTURE_PROVIDER={settings.capture_provider!r}")
