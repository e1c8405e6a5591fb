"""Payload loader - parses payload library YAML files into Payload models.

Supports two modes:
  1. Single file with a ``payloads`` mapping of name -> payload
  2. Directory with one payload per ``*.yaml`` file (name = file stem)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from shotserver.models.payload import Payload

log = logging.getLogger(__name__)


def _parse_payload(name: str, attrs: dict[str, Any]) -> Payload:
    """Parse one payload section; the section key is the default name."""
    if not isinstance(attrs, dict):
        raise ValueError(f"Payload {name!r} must be a mapping")
    try:
        return Payload.from_dict({"name": name, **attrs})
    except ValueError as exc:
        raise ValueError(f"Payload {name!r}: {exc}") from exc


def load_payloads(path: str | Path = "config/payloads.yaml") -> dict[str, Payload]:
    """Load all payload definitions from YAML file(s).

    Args:
        path: Either a directory with one YAML file per payload or a
              single YAML file with a ``payloads`` section.

    Returns:
        Payloads keyed by name, in file order.

    Raises:
        ValueError: If a payload entry is malformed.
    """
    path = Path(path)
    payloads: dict[str, Payload] = {}

    if path.is_dir():
        # -- Per-payload files mode --------------------------------
        for payload_file in sorted(path.glob("*.yaml")):
            with payload_file.open() as f:
                data = yaml.safe_load(f) or {}
            payload = _parse_payload(payload_file.stem, data)
            payloads[payload.name] = payload
    else:
        # -- Single-file mode --------------------------------------
        with path.open() as f:
            data = yaml.safe_load(f) or {}
        for name, attrs in (data.get("payloads") or {}).items():
            payload = _parse_payload(str(name), attrs)
            payloads[payload.name] = payload

    log.info("Loaded %d payload(s) from %s", len(payloads), path)
    return payloads
