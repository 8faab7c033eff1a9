"""HTTP transport construction for Redfish endpoints."""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple
from urllib.parse import urlsplit, urlunsplit

import requests
from requests.auth import HTTPBasicAuth
from urllib3.exceptions import InsecureRequestWarning

from . import __version__
from .errors import MissingConfigurationError


HEADER_USER_AGENT = f"redfish-oob/{__version__}"

# (connect, read) timeout in seconds applied to every request
DEFAULT_TIMEOUT: Tuple[int, int] = (5, 30)

SYSTEMS_COLLECTION = "Systems"

# Explicit None entries keep environment proxies from being merged in
NO_PROXIES: Dict[str, Optional[str]] = {"http": None, "https": None, "all": None}


@dataclass
class TransportConfig:
    """Transport settings shared with the API binding."""

    base_path: str
    session: requests.Session
    default_headers: Dict[str, str] = field(default_factory=dict)
    user_agent: str = HEADER_USER_AGENT
    auth: Optional[HTTPBasicAuth] = None
    timeout: Tuple[int, int] = DEFAULT_TIMEOUT
    verify: bool = True
    proxies: Optional[Dict[str, Optional[str]]] = None


def get_resource_id_from_url(url: str) -> str:
    """
    Return the last path segment of a resource URL or odata id.
    
    Args:
        url: Full URL or path (e.g., '/redfish/v1/Systems/1234')
        
    Returns:
        Resource identifier, or an empty string if the path has none
    """
    path = urlsplit(url).path.rstrip("/")
    return path.rsplit("/", 1)[-1] if path else ""


def get_base_path(redfish_url: str) -> str:
    """
    Derive the API base path from a system URL.

    The system id and a trailing ``Systems`` collection segment are dropped,
    so ``https://10.0.0.1/redfish/v1/Systems/1234`` becomes
    ``https://10.0.0.1/redfish/v1``.
    """
    parsed = urlsplit(redfish_url)
    if not parsed.scheme or not parsed.netloc:
        raise MissingConfigurationError("Redfish URL")

    segments = parsed.path.rstrip("/").split("/")
    if len(segments) < 2 or not segments[-1]:
        raise MissingConfigurationError("management URL system ID")

    segments = segments[:-1]
    if segments[-1] == SYSTEMS_COLLECTION:
        segments = segments[:-1]

    return urlunsplit((parsed.scheme, parsed.netloc, "/".join(segments), "", ""))


def build_transport(
    base_path: str,
    insecure: bool = False,
    use_proxy: bool = True,
    username: str = "",
    password: str = "",
    headers: Optional[Dict[str, str]] = None,
) -> TransportConfig:
    """
    Build the HTTP transport used to reach a Redfish service.

    A regular requests.Session is used so connection pooling and the other
    library defaults stay in place; only TLS verification and proxy usage
    are overridden.
    
    Args:
        base_path: API root (e.g., 'https://10.0.0.1/redfish/v1')
        insecure: Skip TLS certificate verification
        use_proxy: Honour proxy settings from the environment
        username: Basic auth username
        password: Basic auth password
        headers: Extra headers sent with every request (e.g., Host when tunneling)
        
    Returns:
        TransportConfig holding the configured session
    """
    session = requests.Session()

    # Per-request values win over REQUESTS_CA_BUNDLE and HTTP(S)_PROXY from the
    # environment; session attributes do not.
    verify = True
    if insecure:
        verify = False
        session.verify = False
        requests.packages.urllib3.disable_warnings(InsecureRequestWarning)

    proxies = None
    if not use_proxy:
        proxies = dict(NO_PROXIES)

    default_headers = dict(headers or {})
    session.headers.update({"User-Agent": HEADER_USER_AGENT})
    session.headers.update(default_headers)

    auth = None
    if username and password:
        auth = HTTPBasicAuth(username, password)
        session.auth = auth

    return TransportConfig(
        base_path=base_path,
        session=session,
        default_headers=default_headers,
        auth=auth,
        verify=verify,
        proxies=proxies,
    )
