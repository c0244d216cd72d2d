from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Redactor:
    enabled: bool = True

    def redact_ip(self, ip: str | None) -> str:
        if ip is None:
            return ""
        if not self.enabled:
            return ip
        parts = ip.split(".")
        if len(parts) == 4 and all(part.isdigit() for part in parts):
            return f"x.x.x.{parts[3]}"
        return ip

    def redact_identity(self, identity: str | None) -> str:
        if identity is None:
            return ""
        if not self.enabled or len(identity) <= 4:
            return identity
        return f"{'x' * (len(identity) - 4)}{identity[-4:]}"

    def redact_secret(self, secret: str | None) -> str:
        if secret is None:
            return ""
        if not self.enabled:
            return secret
        return "********"
