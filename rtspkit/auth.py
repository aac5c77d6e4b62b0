"""Preemptive Basic authentication for configured credentials."""

from __future__ import annotations

import base64
from typing import Optional

def basic_auth_header(user: str, password: str) -> str:
    token = base64.b64encode(f"{user}:{password}".encode()).decode()
    return f"Basic {token}"

def authorization_for(user: Optional[str], password: Optional[str]) -> Optional[str]:
    """Return an ``Authorization`` value, or None when no username is configured."""
    if not user:
        return None
    return basic_auth_header(user, password or "")
