# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Timing-safe comparison of signatures."""

import hmac


def equals_constant_time(a: bytes, b: bytes) -> bool:
    """Compare two byte strings without leaking the mismatch position.

    Length is not treated as secret: inputs of different length return
    False straight away.  Equal-length inputs are compared with
    ``hmac.compare_digest``, which always inspects every byte.

    Args:
        a: First value (e.g. the signature sent by the client).
        b: Second value (e.g. the recomputed signature).

    Returns:
        True if both values are identical.
    """
    if len(a) != len(b):
        return False
    return hmac.compare_digest(a, b)
