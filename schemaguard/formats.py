"""Built-in `format` validators.

A format validator takes a string and returns an error message, or None if the
string is acceptable. Lookup is by format name.
"""

import ipaddress
import re
from datetime import date
from typing import Dict, Optional
from urllib.parse import urlparse

from schemaguard.config import FormatValidator

UUID_PATTERN = re.compile(
    r'^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$'
)
DATE_PATTERN = re.compile(r'^(\d{4})-(\d{2})-(\d{2})$')
TIME_PATTERN = re.compile(
    r'^([01]\d|2[0-3]):[0-5]\d:([0-5]\d|60)(\.\d+)?([zZ]|[+-]([01]\d|2[0-3]):[0-5]\d)$'
)
EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+$')
HOSTNAME_LABEL_PATTERN = re.compile(r'^(?!-)[A-Za-z0-9-]{1,63}(?<!-)$')
JSON_POINTER_PATTERN = re.compile(r'^(/([^/~]|~[01])*)*$')
URI_SCHEME_PATTERN = re.compile(r'^[A-Za-z][A-Za-z0-9+\-.]*$')


def _check_date(value: str) -> Optional[str]:
    match = DATE_PATTERN.match(value)
    if match:
        try:
            date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
            return None
        except ValueError:
            pass
    return f"[{value}] is not a valid date. Expected YYYY-MM-DD"


def _check_time(value: str) -> Optional[str]:
    if TIME_PATTERN.match(value):
        return None
    return f"[{value}] is not a valid time. Expected HH:MM:SS[.fraction](Z|+HH:MM)"


def _check_date_time(value: str) -> Optional[str]:
    parts = re.split(r'[tT]', value, maxsplit=1)
    if len(parts) == 2 and _check_date(parts[0]) is None and _check_time(parts[1]) is None:
        return None
    return f"[{value}] is not a valid date-time. Expected RFC 3339 date-time"


def _check_email(value: str) -> Optional[str]:
    if EMAIL_PATTERN.match(value) and _check_hostname(value.rsplit('@', 1)[1]) is None:
        return None
    return f"[{value}] is not a valid email address"


def _check_hostname(value: str) -> Optional[str]:
    host = value[:-1] if value.endswith('.') else value
    if host and len(host) <= 253 and all(HOSTNAME_LABEL_PATTERN.match(label) for label in host.split('.')):
        return None
    return f"[{value}] is not a valid hostname"


def _check_ipv4(value: str) -> Optional[str]:
    try:
        ipaddress.IPv4Address(value)
        return None
    except ValueError:
        return f"[{value}] is not a valid ipv4 address"


def _check_ipv6(value: str) -> Optional[str]:
    try:
        ipaddress.IPv6Address(value)
        return None
    except ValueError:
        return f"[{value}] is not a valid ipv6 address"


def _check_uri(value: str) -> Optional[str]:
    parsed = urlparse(value)
    if parsed.scheme and URI_SCHEME_PATTERN.match(parsed.scheme) and ' ' not in value:
        return None
    return f"[{value}] is not a valid URI"


def _check_uri_reference(value: str) -> Optional[str]:
    if ' ' in value:
        return f"[{value}] is not a valid URI reference"
    return None


def _check_uuid(value: str) -> Optional[str]:
    if UUID_PATTERN.match(value):
        return None
    return f"[{value}] is not a valid UUID"


def _check_regex(value: str) -> Optional[str]:
    try:
        re.compile(value)
        return None
    except re.error:
        return f"[{value}] is not a valid regular expression"


def _check_json_pointer(value: str) -> Optional[str]:
    if JSON_POINTER_PATTERN.match(value):
        return None
    return f"[{value}] is not a valid JSON pointer"


BUILTIN_FORMATS: Dict[str, FormatValidator] = {
    'date': _check_date,
    'time': _check_time,
    'date-time': _check_date_time,
    'email': _check_email,
    'hostname': _check_hostname,
    'ipv4': _check_ipv4,
    'ipv6': _check_ipv6,
    'uri': _check_uri,
    'uri-reference': _check_uri_reference,
    'uuid': _check_uuid,
    'regex': _check_regex,
    'json-pointer': _check_json_pointer,
}


def lookup_format(name: str, custom: Optional[Dict[str, FormatValidator]] = None) -> Optional[FormatValidator]:
    """Custom validators take precedence over the built-in ones."""
    if custom and name in custom:
        return custom[name]
    return BUILTIN_FORMATS.get(name)
