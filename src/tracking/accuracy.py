"""
Per-device accuracy calculation.

A device reports how far it is from the base location. Its accuracy radius is
the base accuracy widened by that distance, scaled by the flag multiplier when
the base is a stored flag.
"""


def compute_accuracy(base_accuracy: float, distance: float, multiplier: float = 1) -> float:
    """
    Compute a device's accuracy radius.

    No clamping or sign checks: negative or non-finite distances pass straight
    through.

    Args:
        base_accuracy: Accuracy of the base location in meters
        distance: Device distance from the base location in meters
        multiplier: Distance multiplier (1 for direct reports)

    Returns:
        base_accuracy + distance * multiplier
    """
    return base_accuracy + distance * multiplier
