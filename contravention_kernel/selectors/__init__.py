"""Read-only query selectors."""

from contravention_kernel.selectors.contravention_selector import ContraventionSelector
from contravention_kernel.selectors.points_selector import PointsSelector

__all__ = ["ContraventionSelector", "PointsSelector"]
