class PrayerTimesError(ValueError):
    """Base class for errors reported to the caller of the engine."""


class ConfigurationError(PrayerTimesError):
    """Unknown method, format or an out-of-range custom parameter."""


class InputRangeError(PrayerTimesError):
    """Coordinates or timezone outside their geographic range."""
