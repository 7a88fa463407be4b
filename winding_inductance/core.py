from dataclasses import dataclass

from winding_inductance.config import DEFAULT_WINDOW_MULTIPLIER, validate_window_multiplier


@dataclass(frozen=True)
class Core:
    """Transformer core leg and window, shared by every coil on the leg"""

    real_window_height: float
    """[m] distance between the yokes"""

    radius: float
    """[m] radius of the core leg"""

    window_height_multiplier: float = DEFAULT_WINDOW_MULTIPLIER
    """
    [dimensionless] enlargement of the window height used in the series solution.
    Rabin's method assumes an infinitely permeable yoke; stretching the window
    moves the image currents away and better represents the real flux pattern.
    """

    def __post_init__(self):
        if not self.real_window_height > 0.0:
            raise ValueError(
                f"Window height must be positive, got {self.real_window_height}"
            )
        if not self.radius > 0.0:
            raise ValueError(f"Core radius must be positive, got {self.radius}")
        validate_window_multiplier(self.window_height_multiplier)

    @property
    def effective_window_height(self) -> float:
        """[m] window height used for the spatial frequencies of the harmonics"""
        return self.real_window_height * self.window_height_multiplier
