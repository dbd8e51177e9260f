"""URL validation, SSRF screening and normalization."""

import ipaddress
import re
from typing import List, Optional, Tuple, Union
from urllib.parse import SplitResult, urlsplit, urlunsplit

from pydantic import BaseModel, Field

DEFAULT_MAX_URL_LENGTH = 2048

ALLOWED_SCHEMES = ("http", "https", "ftp", "ftps")

DEFAULT_PORTS = {"http": 80, "https": 443}

DANGEROUS_HOSTS = {"localhost", "0.0.0.0", "127.0.0.1", "::1"}

# SSH, telnet, SMTP, DNS, POP3, IMAP, IMAPS, POP3S, MSSQL, MySQL, PostgreSQL, Redis
DANGEROUS_PORTS = {22, 23, 25, 53, 110, 143, 993, 995, 1433, 3306, 5432, 6379}

PRIVATE_NETWORKS = [
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
]

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")
_HEX_PART_RE = re.compile(r"0[xX]([0-9a-fA-F]*)")
_OCTAL_PART_RE = re.compile(r"0([0-7]+)")
_DECIMAL_PART_RE = re.compile(r"[0-9]+")
_PATH_TAIL_RE = re.compile(r"[/\s]+$")


class URLValidationResult(BaseModel):
    """Outcome of :func:`validate_url`."""

    is_valid: bool
    normalized_url: Optional[str] = None
    errors: List[str] = Field(default_factory=list)


def _split(url: str) -> Optional[SplitResult]:
    try:
        parts = urlsplit(url)
        # Accessing port validates it
        parts.port
    except ValueError:
        return None
    return parts


def _ipv4_number(part: str) -> Optional[int]:
    match = _HEX_PART_RE.fullmatch(part)
    if match:
        return int(match.group(1) or "0", 16)
    match = _OCTAL_PART_RE.fullmatch(part)
    if match:
        return int(match.group(1), 8)
    if _DECIMAL_PART_RE.fullmatch(part) and not (len(part) > 1 and part.startswith("0")):
        return int(part)
    return None


def canonical_ipv4(host: str) -> Optional[str]:
    """
    Dotted-quad form of a numeric IPv4 host, parsed the way browsers do.

    A single 32-bit number, one to four dotted parts and hex (``0x``) or
    octal (leading ``0``) parts are all accepted, so ``2130706433``,
    ``127.1`` and ``0x7f.0.0.1`` each give ``127.0.0.1``. Hosts whose last
    label is not a number are names, and give None.

    Raises:
        ValueError: The host ends in a number but is not a valid address
    """
    parts = host.split(".")
    if len(parts) > 1 and parts[-1] == "":
        parts.pop()

    if _ipv4_number(parts[-1]) is None:
        if _DECIMAL_PART_RE.fullmatch(parts[-1]):
            raise ValueError(f"Invalid IPv4 address: {host}")
        return None

    numbers = [_ipv4_number(part) for part in parts]
    if len(numbers) > 4 or None in numbers:
        raise ValueError(f"Invalid IPv4 address: {host}")
    if any(number > 255 for number in numbers[:-1]) or numbers[-1] >= 256 ** (5 - len(numbers)):
        raise ValueError(f"Invalid IPv4 address: {host}")

    value = numbers[-1]
    for index, number in enumerate(numbers[:-1]):
        value += number * 256 ** (3 - index)
    return str(ipaddress.IPv4Address(value))


def canonical_host(host: str) -> str:
    """Lower-cased host, with numeric IPv4 spellings rewritten as dotted quads."""
    host = host.lower()
    if ":" in host:
        return host
    try:
        return canonical_ipv4(host) or host
    except ValueError:
        return host


def _is_malformed_ipv4(host: str) -> bool:
    if ":" in host:
        return False
    try:
        canonical_ipv4(host)
    except ValueError:
        return True
    return False


def _parse_ip(host: str) -> Optional[Union[ipaddress.IPv4Address, ipaddress.IPv6Address]]:
    try:
        return ipaddress.ip_address(canonical_host(host))
    except ValueError:
        return None


def is_private_host(host: str) -> bool:
    """True for loopback, RFC1918, link-local and unique-local literals."""
    address = _parse_ip(host)
    if address is None:
        return False
    return any(address in network for network in PRIVATE_NETWORKS if network.version == address.version)


def _reserved_ipv4(host: str) -> bool:
    address = _parse_ip(host)
    if address is None or address.version != 4:
        return False
    first_octet = int(str(address).split(".")[0])
    return first_octet in (0, 255) or 224 <= first_octet <= 239


def is_valid_url(url: str, max_length: int = DEFAULT_MAX_URL_LENGTH) -> bool:
    """Check scheme, host presence and total length."""
    if not url or len(url) > max_length:
        return False
    parts = _split(url)
    if parts is None:
        return False
    if parts.scheme.lower() not in ALLOWED_SCHEMES or not parts.hostname:
        return False
    return not _is_malformed_ipv4(parts.hostname)


def _safety_errors(parts: SplitResult) -> List[str]:
    errors = []
    host = canonical_host(parts.hostname or "")

    if host in DANGEROUS_HOSTS:
        errors.append(f"Host '{host}' is not allowed")
    elif is_private_host(host):
        errors.append("Private network addresses are not allowed")
    elif _reserved_ipv4(host):
        errors.append("Reserved or multicast addresses are not allowed")

    if parts.username is not None or parts.password is not None:
        errors.append("URLs with embedded credentials are not allowed")

    if parts.port in DANGEROUS_PORTS:
        errors.append(f"Port {parts.port} is not allowed")

    return errors


def is_safe_url(url: str) -> bool:
    """Screen a URL against SSRF targets: internal hosts, credentials, service ports."""
    parts = _split(url)
    if parts is None:
        return False
    return not _safety_errors(parts)


def _looks_like_domain(value: str) -> bool:
    host = value.split("/", 1)[0].split("?", 1)[0]
    return "." in host or host.split(":", 1)[0].lower() == "localhost"


def _format_netloc(parts: SplitResult, scheme: str) -> str:
    host = canonical_host(parts.hostname or "")
    if ":" in host:
        host = f"[{host}]"

    userinfo = ""
    if parts.username is not None:
        userinfo = parts.username
        if parts.password is not None:
            userinfo += f":{parts.password}"
        userinfo += "@"

    port = parts.port
    if port is not None and DEFAULT_PORTS.get(scheme) != port:
        return f"{userinfo}{host}:{port}"
    return f"{userinfo}{host}"


def normalize_url(url: str) -> str:
    """
    Canonicalize a URL for storage and duplicate detection.

    Bare domains get ``https://``, the host is lower-cased and numeric IPv4
    hosts are written as dotted quads. Default ports are dropped, trailing
    slashes and whitespace are removed except on the root path, and an empty
    path becomes ``/``. Input that cannot be parsed is returned
    unchanged. ``normalize_url(normalize_url(u)) == normalize_url(u)``.
    """
    candidate = (url or "").strip()
    if not candidate:
        return url

    if not _SCHEME_RE.match(candidate):
        if not _looks_like_domain(candidate):
            return url
        candidate = f"https://{candidate}"

    parts = _split(candidate)
    if parts is None or not parts.hostname:
        return url

    scheme = parts.scheme.lower()
    path = parts.path.rstrip("/") or "/"
    query, fragment = parts.query, parts.fragment.rstrip()
    # The last non-empty component must not end in whitespace
    if not fragment:
        query = query.rstrip()
        if not query:
            path = _PATH_TAIL_RE.sub("", parts.path) or "/"
    return urlunsplit((scheme, _format_netloc(parts, scheme), path, query, fragment))


def validate_url(
    url: str,
    max_length: int = DEFAULT_MAX_URL_LENGTH,
    allow_unsafe: bool = False,
    normalize: bool = True,
) -> URLValidationResult:
    """
    Validate a submitted URL and produce its canonical form.

    Args:
        url: The user-supplied URL
        max_length: Longest acceptable URL
        allow_unsafe: Skip the SSRF screening (administrative override)
        normalize: Normalize before validating

    Returns:
        URLValidationResult: validity, normalized form and itemized errors
    """
    errors: List[str] = []
    if not url or not url.strip():
        return URLValidationResult(is_valid=False, errors=["URL is required"])

    target = normalize_url(url) if normalize else url.strip()

    if len(target) > max_length:
        errors.append(f"URL exceeds maximum length of {max_length} characters")

    parts = _split(target)
    if parts is None or not parts.scheme:
        errors.append("Invalid URL format")
        return URLValidationResult(is_valid=False, errors=errors)

    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        errors.append(f"Scheme '{parts.scheme}' is not allowed; use one of {', '.join(ALLOWED_SCHEMES)}")
    if not parts.hostname:
        errors.append("URL must include a host")
    elif _is_malformed_ipv4(parts.hostname):
        errors.append(f"Host '{parts.hostname}' is not a valid IPv4 address")

    if not allow_unsafe and parts.hostname:
        errors.extend(_safety_errors(parts))

    if errors:
        return URLValidationResult(is_valid=False, errors=errors)
    return URLValidationResult(is_valid=True, normalized_url=target)


def _resource_key(url: str) -> Optional[Tuple[str, str, Optional[int], str]]:
    parts = _split(normalize_url(url))
    if parts is None or not parts.hostname:
        return None
    scheme = parts.scheme.lower()
    port = parts.port if parts.port is not None else DEFAULT_PORTS.get(scheme)
    return scheme, parts.hostname.lower(), port, parts.path or "/"


def is_same_resource(first: str, second: str) -> bool:
    """Compare scheme, host, port and path, ignoring query and fragment."""
    first_key = _resource_key(first)
    return first_key is not None and first_key == _resource_key(second)


def extract_domain(url: Optional[str]) -> Optional[str]:
    """Lower-cased host of url, or None when it has none."""
    if not url:
        return None
    parts = _split(url.strip())
    if parts is None or not parts.hostname:
        return None
    return parts.hostname.lower()
