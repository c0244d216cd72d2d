"""TLS trust settings for talking to the robot.

WARNING: the robot presents a self-signed certificate that cannot be
verified, so connections to it use a context with certificate and hostname
verification turned OFF. Use :func:`unverified_tls_context` only for the
robot's local port 8883, never for any other endpoint.
"""

from __future__ import annotations

import ssl


def unverified_tls_context() -> ssl.SSLContext:
    """Client context that accepts any certificate the peer presents."""
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context
