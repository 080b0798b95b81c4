"""
Exceptions raised by the reconnaissance engine.

Connection failures are never raised; they become closed results.
"""


class InvalidSpec(ValueError):
    """A scan specification that cannot be executed.

    Raised for malformed CIDR blocks or port specs, out-of-range ports,
    non-positive concurrency or timeouts. Always raised before any
    probing starts.
    """
