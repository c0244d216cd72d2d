from __future__ import annotations

from .credentials import CREDENTIAL_PROBE, parse_credential, retrieve_credential
from .discovery import DISCOVERY_PROBE, DiscoveryResult, DiscoveryScanner, scan
from .session import Session, SessionState
from .tls import unverified_tls_context

__all__ = [
    "CREDENTIAL_PROBE",
    "DISCOVERY_PROBE",
    "DiscoveryResult",
    "DiscoveryScanner",
    "Session",
    "SessionState",
    "parse_credential",
    "retrieve_credential",
    "scan",
    "unverified_tls_context",
]
