"""
Domain service: Pulse animation for habitat markers.
"""
import math
from dataclasses import dataclass
from typing import Optional

from arbor.config import settings


@dataclass(frozen=True)
class MarkerStyle:
    """Per-frame appearance of a habitat marker."""
    pulse: float
    dot_radius: float
    ring_radius: float
    ring_opacity: float


class MarkerAnimator:
    """
    Computes a time-varying pulse for habitat markers.

    The pulse is a sine wave remapped from [-1, 1] to [0, 1]. It depends
    only on the clock value, so every marker evaluated at the same instant
    pulses in phase.
    """

    def __init__(
        self,
        period_ms: Optional[float] = None,
        base_radius: Optional[float] = None,
        growth: Optional[float] = None,
        ring_opacity: Optional[float] = None,
    ):
        self.period_ms = period_ms if period_ms is not None else settings.marker_pulse_period_ms
        self.base_radius = base_radius if base_radius is not None else settings.marker_base_radius
        self.growth = growth if growth is not None else settings.marker_pulse_growth
        self.ring_opacity = ring_opacity if ring_opacity is not None else settings.marker_ring_opacity

        if self.period_ms <= 0:
            raise ValueError(f"Pulse period must be positive, got {self.period_ms}")

    def pulse(self, now_ms: float) -> float:
        """Pulse intensity in [0, 1] at the given clock value."""
        value = (math.sin(2.0 * math.pi * now_ms / self.period_ms) + 1.0) / 2.0
        return min(1.0, max(0.0, value))

    def style(self, now_ms: float) -> MarkerStyle:
        """
        Marker geometry at the given clock value.

        The ring grows with the pulse while fading out.
        """
        pulse = self.pulse(now_ms)
        return MarkerStyle(
            pulse=pulse,
            dot_radius=self.base_radius,
            ring_radius=self.base_radius + pulse * self.growth,
            ring_opacity=self.ring_opacity * (1.0 - pulse),
        )
