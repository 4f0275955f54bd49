"""Notification port — abstract interface for delivering transient alerts.

Core modules depend on this protocol, never on a specific messaging provider.
"""

from __future__ import annotations

from typing import Protocol

from src.data.models import TransientAlert


class AlertPort(Protocol):
    """Abstract transient-alert channel used by core modules."""

    async def send_alert(self, alert: TransientAlert) -> None: ...
