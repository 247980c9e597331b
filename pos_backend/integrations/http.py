# integrations/http.py
"""
Minimal JSON-over-HTTP helper shared by the integration adapters.

urllib only: every adapter is a thin request builder on top of request_json().
Error mapping:
- HTTP status >= 400  -> UpstreamHTTPError (parsed payload attached when JSON)
- network / timeout   -> TransportError
- non-JSON body       -> TransportError
"""

from __future__ import annotations

import json
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from integrations.exceptions import TransportError, UpstreamHTTPError

USER_AGENT = "pos-backend/1.0 Python-urllib"


def safe_preview(text: str, limit: int = 800) -> str:
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit] + " ...(truncated)"


def parse_json_or_text(raw: str) -> dict[str, Any]:
    # Authorize.Net prefixes its JSON with a UTF-8 BOM.
    raw = (raw or "").lstrip("\ufeff")
    try:
        parsed = json.loads(raw)
    except ValueError:
        return {"kind": "text", "raw": raw}
    if isinstance(parsed, dict):
        return {"kind": "json", "json": parsed, "raw": raw}
    return {"kind": "json_non_object", "json": parsed, "raw": raw}


def request_json(
    method: str,
    url: str,
    *,
    body: dict | None = None,
    params: dict | None = None,
    headers: dict | None = None,
    timeout: int = 25,
    label: str = "upstream",
) -> dict[str, Any]:
    if params:
        url = f"{url}?{urlencode(params)}"

    data = None
    if body is not None:
        data = json.dumps(body, ensure_ascii=False, default=str).encode("utf-8")

    req = Request(
        url,
        data=data,
        headers={
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
            **(headers or {}),
        },
        method=method,
    )

    try:
        with urlopen(req, timeout=timeout) as resp:
            raw = resp.read().decode("utf-8", errors="replace")
    except HTTPError as e:
        try:
            raw = e.read().decode("utf-8", errors="replace")
        except OSError:
            raw = ""
        parsed_any = parse_json_or_text(raw)

        if parsed_any.get("kind") == "json":
            j = parsed_any.get("json") or {}
            msg = j.get("message") or j.get("error") or f"{label} rejected request"
            raise UpstreamHTTPError(
                f"{label} HTTPError: {e.code} {msg}", status=e.code, payload=j
            ) from e

        preview = safe_preview(parsed_any.get("raw") or str(e))
        raise UpstreamHTTPError(f"{label} HTTPError: {e.code} {preview}", status=e.code) from e
    except URLError as e:
        raise TransportError(f"{label} URLError: {e.reason}") from e
    except (TimeoutError, OSError) as e:
        raise TransportError(f"{label} request failed: {e}") from e

    parsed_any = parse_json_or_text(raw)
    if parsed_any.get("kind") != "json":
        raise TransportError(
            f"{label} returned non-JSON: {safe_preview(parsed_any.get('raw') or '')}"
        )

    return parsed_any.get("json") or {}
