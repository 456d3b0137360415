"""Unit name <-> object path label codec.

Unit names are embedded into object paths such as
``/org/freedesktop/systemd1/unit/foo_2dbar_2eservice``. Every byte that
is not an ASCII letter, and a digit in first position, is written as
``_xx`` with two lowercase hex digits. The empty name is ``_``.
"""
import logging
import re

from sdw.constants import SystemdDBusConstants, UnitLimits
from sdw.errors import InvalidArgumentError

_logger = logging.getLogger(__name__)

_HEX_DIGITS = '0123456789abcdef'
_LABEL_CHARS = re.compile(r'[A-Za-z0-9_]+')
_ESCAPE = re.compile(rb'_([0-9a-fA-F]{2})')


def escape_label(name: str) -> str:
    """Escape a name into a single object path element.

    Args:
        name: Logical name to escape

    Returns:
        The escaped label
    """
    raw = name.encode('utf-8')
    if not raw:
        return '_'

    parts = []
    for index, byte in enumerate(raw):
        char = chr(byte)
        is_letter = char.isascii() and char.isalpha()
        is_digit = index > 0 and char.isascii() and char.isdigit()
        if is_letter or is_digit:
            parts.append(char)
        else:
            parts.append(
                '_' + _HEX_DIGITS[byte >> 4] + _HEX_DIGITS[byte & 0xf]
            )
    return ''.join(parts)


def unescape_label(label: str) -> bytes:
    """Reverse escape_label.

    An underscore not followed by two hex digits is kept literally.

    Args:
        label: Escaped object path element

    Returns:
        The raw bytes of the unescaped name
    """
    if label == '_':
        return b''

    return _ESCAPE.sub(
        lambda match: bytes([int(match.group(1), 16)]),
        label.encode('ascii'),
    )


def validate_unit_name(unit_name: object) -> str:
    """Check the unit name precondition shared by all encoding paths.

    Args:
        unit_name: Candidate unit name

    Returns:
        The unit name unchanged

    Raises:
        InvalidArgumentError: If the name is not a string or is
            MAX_UNIT_NAME_LEN bytes or longer
    """
    if not isinstance(unit_name, str):
        raise InvalidArgumentError(f'invalid unit name {unit_name!r}')

    if len(unit_name.encode('utf-8')) >= UnitLimits.MAX_UNIT_NAME_LEN:
        raise InvalidArgumentError(f"invalid unit name '{unit_name}'")

    return unit_name


def encode_unit_name(unit_name: str) -> str:
    """Encode a unit name for use as an object path segment.

    Args:
        unit_name: Unit name, e.g. 'foo-bar@baz.service'

    Returns:
        The encoded segment, e.g. 'foo_2dbar_40baz_2eservice'

    Raises:
        InvalidArgumentError: If the name is invalid or encodes to an
            empty segment
    """
    validate_unit_name(unit_name)

    path = f'{UnitLimits.CODEC_PREFIX}/{escape_label(unit_name)}'
    if len(path) <= len(UnitLimits.CODEC_PREFIX) + 1:
        raise InvalidArgumentError(f"invalid length of '{path}'")

    encoded = path[len(UnitLimits.CODEC_PREFIX) + 1:]
    _logger.debug("encoded '%s' to '%s'", unit_name, encoded)
    return encoded


def decode_unit_name(encoded: str) -> str:
    """Decode an object path segment back into the unit name.

    Args:
        encoded: Encoded segment as produced by encode_unit_name

    Returns:
        The decoded unit name

    Raises:
        InvalidArgumentError: If the segment is malformed or the decoded
            name is too long
    """
    if not isinstance(encoded, str) or not _LABEL_CHARS.fullmatch(encoded):
        raise InvalidArgumentError(f"failed to decode '{encoded}'")

    raw = unescape_label(encoded)
    if len(raw) >= UnitLimits.MAX_UNIT_NAME_LEN:
        raise InvalidArgumentError(f"failed to decode '{encoded}'")

    try:
        unit_name = raw.decode('utf-8')
    except UnicodeDecodeError as e:
        raise InvalidArgumentError(
            f"failed to decode '{encoded}': {e}"
        ) from e

    _logger.debug("decoded '%s' to '%s'", encoded, unit_name)
    return unit_name


def unit_object_path(encoded: str) -> str:
    """Build the manager object path of an encoded unit.
    """
    return f'{SystemdDBusConstants.UNIT_PATH_PREFIX}/{encoded}'
