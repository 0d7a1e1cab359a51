"""NMEA checksum handling.

A sentence may end with ``*HH`` where ``HH`` is the XOR of every character
between ``$`` and ``*`` written as two hexadecimal digits. Receivers do not
always send it, so the checksum is optional: when it is absent the payload is
accepted as-is, when it is present it must match.

Example sentence structure:
    $GPGGA,123519,4807.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,*47
     ^-------------------- checksummed payload -----------------^ ^^
                                                          checksum (0x47)
"""

__all__ = ["calculate_checksum", "strip_checksum", "validate_checksum"]


def calculate_checksum(payload: str) -> int:
    """Return the XOR of the ASCII values of *payload*.

    Args:
        payload: The text between '$' and '*' (exclusive).

    Returns:
        Integer checksum value (0-255).

    Example:
        >>> calculate_checksum("GPGGA")
        86
    """
    result = 0
    for character in payload:
        result ^= ord(character)
    return result


def _split_checksum(body: str) -> tuple[str, str | None]:
    """Split ``payload*HH`` into the payload and the hex digits (if any)."""
    if "*" not in body:
        return body, None
    star = body.index("*")
    return body[:star], body[star + 1 :]


def strip_checksum(sentence: str) -> str | None:
    """Return the checksum-stripped payload of a sentence, or None if rejected.

    Leading/trailing whitespace (including the CRLF terminator) is ignored.

    Args:
        sentence: Raw line read from the receiver.

    Returns:
        The text between '$' and '*' (or the end of the line when no checksum
        is present), or None if:
        - the line does not start with '$'
        - a checksum is present but is not exactly two hex digits
        - a checksum is present and does not match the payload

    Example:
        >>> strip_checksum("$GPVTG,054.7,T,034.4,M,005.5,N,010.2,K*48")
        'GPVTG,054.7,T,034.4,M,005.5,N,010.2,K'
        >>> strip_checksum("$GPVTG,054.7,T,034.4,M,005.5,N,010.2,K")
        'GPVTG,054.7,T,034.4,M,005.5,N,010.2,K'
    """
    sentence = sentence.strip()
    if not sentence.startswith("$"):
        return None

    payload, provided = _split_checksum(sentence[1:])
    if provided is None:
        return payload

    if len(provided) != 2:
        return None
    try:
        expected = int(provided, 16)
    except ValueError:
        return None

    if calculate_checksum(payload) != expected:
        return None
    return payload


def validate_checksum(sentence: str) -> bool:
    """Return True when a sentence carries a checksum and it matches.

    Unlike :func:`strip_checksum`, a missing checksum is a failure here; this
    is the strict check used when a caller wants proof of integrity.

    Example:
        >>> validate_checksum("$GPGGA,123519,4807.038,N,01131.000,E,1,08,0.9,545.4,M,46.9,M,,*47")
        True
    """
    sentence = sentence.strip()
    if "*" not in sentence:
        return False
    return strip_checksum(sentence) is not None
