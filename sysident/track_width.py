"""Track width estimation for differential drivetrains."""


def calculate_track_width(left: float, right: float, accum: float) -> float:
    """Estimate the track width from wheel travel and heading change.

    ``left`` and ``right`` are the distances travelled by each side and
    ``accum`` is the accumulated rotation in radians.
    """
    # Solving ω = (v_r − v_l) / 2r for 2r.
    return (abs(right) + abs(left)) / abs(accum)