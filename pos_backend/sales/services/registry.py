# sales/services/registry.py

"""
Configured collaborators (gateway, terminal, ledger, notifier).

Resolved ONCE at startup from settings.POS_INTEGRATIONS (see SalesConfig.ready).
Checkout code asks get_integrations(); it never reads settings per request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Integrations:
    gateway: object = None
    terminal: object = None
    ledger: object = None
    notifier: object = None


_configured = Integrations()


def _build(dotted_path: str | None, role: str):
    if not dotted_path:
        return None
    try:
        cls = import_string(dotted_path)
    except ImportError as exc:
        raise ImproperlyConfigured(f"POS_INTEGRATIONS['{role}'] = {dotted_path!r} cannot be imported") from exc

    instance = cls.from_settings() if hasattr(cls, "from_settings") else cls()
    if getattr(instance, "is_configured", True) is False:
        logger.warning("integrations.not_configured", extra={"role": role, "adapter": dotted_path})
    return instance


def load_from_settings() -> Integrations:
    paths = getattr(settings, "POS_INTEGRATIONS", {}) or {}
    pos = getattr(settings, "POS", {}) or {}

    ledger = None
    if pos.get("LEDGER_SYNC_ENABLED", True):
        ledger = _build(paths.get("LEDGER"), "LEDGER")
    else:
        logger.info("integrations.ledger_sync_disabled")

    return Integrations(
        gateway=_build(paths.get("PAYMENT_GATEWAY"), "PAYMENT_GATEWAY"),
        terminal=_build(paths.get("CLOUD_TERMINAL"), "CLOUD_TERMINAL"),
        ledger=ledger,
        notifier=_build(paths.get("RECEIPT_NOTIFIER"), "RECEIPT_NOTIFIER"),
    )


def configure(integrations: Integrations) -> None:
    global _configured
    _configured = integrations


def get_integrations() -> Integrations:
    return _configured
