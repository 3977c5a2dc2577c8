import contextlib
import ipaddress
import re
from typing import Literal

import dns.asyncresolver
import dns.exception
import dns.resolver
import idna
from loguru import logger

from .errors import InvalidArgumentError, TransportError

NON_SRV_LOOKABLE_HOSTNAMES = ("localhost",)
"""Hostnames that never get an SRV lookup"""

SRV_SERVICE = "_minecraft._tcp"

# A missing record is the common case, not an error.
_NO_RECORD_ERRORS = (
    dns.resolver.NoAnswer,
    dns.resolver.NXDOMAIN,
    dns.exception.Timeout,
)


def check_host(host: str) -> None:
    if not isinstance(host, str) or not host.strip():
        raise InvalidArgumentError("Host argument is required.")


def is_ip_address(address: str) -> bool:
    """
    Check whether the address is a literal IPv4 or IPv6 address.

    :params address: the address to check, IPv6 may carry a zone id or brackets.
    """
    return get_ip_type(address) != "Domain"


def get_ip_type(address: str) -> Literal["IPv4", "IPv6", "Domain"]:
    """Classify an address"""
    candidate = address.strip().strip("[]").split("%", 1)[0]
    try:
        ip = ipaddress.ip_address(candidate)
    except ValueError:
        return "Domain"
    return "IPv4" if ip.version == 4 else "IPv6"


def to_punycode(domain: str) -> str:
    try:
        return idna.encode(domain).decode("utf-8")
    except idna.IDNAError:
        return domain


async def resolve_srv(host: str, timeout: int) -> tuple[str, int] | None:
    """
    Look up the `_minecraft._tcp` SRV record of a host.

    IP addresses and the names in `NON_SRV_LOOKABLE_HOSTNAMES` are never looked up.

    :params host: the address the caller asked for.
    :params timeout: lookup budget in milliseconds.

    :returns: the first record as `(target, port)`, or None if there is no record.
    :raises TransportError: for DNS failures other than a missing record.
    """
    if is_ip_address(host) or host.lower() in NON_SRV_LOOKABLE_HOSTNAMES:
        logger.debug(
            "host '{}' is a direct IP or a non-lookable hostname, skipping SRV lookup", host
        )
        return None

    query = f"{SRV_SERVICE}.{to_punycode(host)}"
    logger.debug("attempting SRV lookup for {} with {}ms timeout", query, timeout)

    try:
        resolver = dns.asyncresolver.Resolver()
        resolver.lifetime = timeout / 1000
        with contextlib.suppress(*_NO_RECORD_ERRORS):
            answer = await resolver.resolve(query, "SRV")
            for rdata in answer:
                target = str(rdata.target).rstrip(".")  # type: ignore
                port = rdata.port  # type: ignore
                logger.debug("SRV lookup successful, new target: {}:{}", target, port)
                return target, port
    except dns.exception.DNSException as e:
        logger.debug("SRV lookup for {} failed unexpectedly: {!r}", host, e)
        raise TransportError.from_exception(e) from e

    logger.debug("no SRV record for {}, using fallback", host)
    return None


def strip_motd_formatting(raw_motd: str | dict | list | None) -> str:
    """
    Remove all formatting from a MOTD.
    Handles legacy `§` codes as well as JSON chat components (as dict or list).

    :param raw_motd: the raw MOTD
    """
    if raw_motd is None:
        return ""

    if isinstance(raw_motd, str):
        return re.sub(r"§.", "", raw_motd)

    if isinstance(raw_motd, list):
        return "".join(strip_motd_formatting(part) for part in raw_motd)

    stripped_motd = strip_motd_formatting(raw_motd.get("text", ""))
    for sub in raw_motd.get("extra") or []:
        stripped_motd += strip_motd_formatting(sub)

    return stripped_motd
