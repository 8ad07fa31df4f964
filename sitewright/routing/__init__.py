"""Model tier routing."""

from sitewright.routing.router import (
    FeasibilityReport,
    ModelRouter,
    ModelSelection,
    RoutingMetrics,
    RoutingStrategy,
)

__all__ = [
    "FeasibilityReport",
    "ModelRouter",
    "ModelSelection",
    "RoutingMetrics",
    "RoutingStrategy",
]
