"""Exception types raised by slope_routing."""


class InvalidWayTypeError(ValueError):
    """A class code outside 0..15 was supplied."""


class InvalidTrackPartError(ValueError):
    """A track part cannot be added to a profile (degenerate distance or speed)."""


class ProfileFormatError(ValueError):
    """A serialized riders profile could not be read."""


class FittingError(RuntimeError):
    """The sigmoid least-squares fit failed or produced non-finite coefficients."""
