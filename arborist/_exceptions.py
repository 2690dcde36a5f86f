class OverlapError(Exception):
    """
    Raised when inverse-propensity weights are undefined because some
    estimated propensity is exactly 0 or 1.

    The overlap-weighted estimand (``target="overlap"``) never divides by the
    propensity and remains available in that case.
    """
    pass
