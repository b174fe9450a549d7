"""Checker service - executes HTTP probes and validates their responses."""
import json
import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional, Tuple

import httpx

from ..config import settings
from ..exceptions import TransportError
from ..utils.time_utils import utcnow
from .auth_resolver import resolve_auth
from .validator import ResponseSnapshot, body_preview, to_json, validate

logger = logging.getLogger(__name__)

SUCCESS = "success"
FAILURE = "failure"

# Zero-width spaces/joiners and BOM often pasted along with URLs
_INVISIBLE_CHARS = re.compile("[\u200b-\u200d\ufeff]")


@dataclass(frozen=True)
class ProbeOutcome:
    """Result of one probe. Persistence returns a copy with `id` set."""
    monitor_id: Optional[int]
    status: str  # success, failure
    http_status: Optional[int] = None
    latency_ms: int = 0
    error_message: Optional[str] = None
    validation_errors: List[str] = field(default_factory=list)
    response_data: Optional[str] = None
    response_metadata: Optional[dict] = None
    checked_at: datetime = field(default_factory=utcnow)
    id: Optional[int] = None

    @property
    def is_success(self) -> bool:
        return self.status == SUCCESS


def sanitize_url(url: Optional[str]) -> str:
    """Strip invisible characters and surrounding whitespace."""
    return _INVISIBLE_CHARS.sub("", url or "").strip()


def check_url(url: str) -> Optional[str]:
    """Return a reason the URL cannot be probed, or None when it is usable."""
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as e:
        return str(e)
    if parsed.scheme not in ("http", "https"):
        return f"unsupported scheme '{parsed.scheme}'" if parsed.scheme else "missing scheme"
    if not parsed.host:
        return "missing host"
    return None


def decode_body(response: httpx.Response) -> Any:
    """Decode a JSON body when possible, otherwise return the text."""
    text = response.text
    if not text.strip():
        return text
    try:
        return json.loads(text)
    except ValueError:
        return text


def snapshot_response(response: httpx.Response) -> ResponseSnapshot:
    return ResponseSnapshot(
        status_code=response.status_code,
        reason=response.reason_phrase,
        headers={name.lower(): value for name, value in response.headers.items()},
        data=decode_body(response),
    )


def _find_os_error(error: BaseException) -> Optional[str]:
    """Walk the exception chain for the underlying socket error."""
    seen = set()
    current = error.__cause__ or error.__context__
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, OSError):
            if current.errno:
                return f"[Errno {current.errno}] {current.strerror}"
            return str(current) or type(current).__name__
        current = current.__cause__ or current.__context__
    return None


def to_transport_error(error: httpx.TransportError) -> TransportError:
    """Summarise an httpx transport failure."""
    code = type(error).__name__
    message = str(error)
    if not message:
        message = "Request timed out" if isinstance(error, httpx.TimeoutException) else code

    address = None
    try:
        url = error.request.url
        port = url.port or (443 if url.scheme == "https" else 80)
        address = f"{url.host}:{port}"
    except RuntimeError:
        # Raised by httpx when the error has no request attached
        pass

    return TransportError(code, message, address=address, os_error=_find_os_error(error))


class CheckerService:
    """Service for probing monitored HTTP endpoints."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        sample_limit: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout or settings.request_timeout_seconds
        self.user_agent = user_agent or settings.user_agent
        self.sample_limit = sample_limit or settings.response_sample_limit
        self.transport = transport

    async def execute(self, monitor) -> ProbeOutcome:
        """Probe a monitor's URL. Every failure is returned as a failure outcome."""
        checked_at = utcnow()
        url = sanitize_url(monitor.url)

        if not url:
            logger.error(f"Monitor \"{monitor.name}\" has no URL configured")
            return ProbeOutcome(
                monitor_id=monitor.id,
                status=FAILURE,
                error_message="Monitor URL is not configured. Please edit the monitor and add a valid URL.",
                validation_errors=["Monitor URL is not configured"],
                checked_at=checked_at,
            )

        url_error = check_url(url)
        if url_error:
            message = f"Invalid URL: {url} ({url_error})"
            return ProbeOutcome(
                monitor_id=monitor.id,
                status=FAILURE,
                error_message=message,
                validation_errors=[message],
                checked_at=checked_at,
            )

        start = None
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self.transport,
            ) as client:
                credentials = await resolve_auth(monitor, client)

                headers = dict(credentials.headers)
                headers["User-Agent"] = self.user_agent
                if credentials.cookie:
                    headers["Cookie"] = credentials.cookie

                start = time.perf_counter()
                response = await client.get(url, headers=headers)
                latency = int((time.perf_counter() - start) * 1000)
        except Exception as e:
            latency = int((time.perf_counter() - start) * 1000) if start is not None else 0
            error_message, diagnostics, http_status, response_data = self._describe_error(e)
            logger.error(f"Check failed for {monitor.name}: {error_message}")
            return ProbeOutcome(
                monitor_id=monitor.id,
                status=FAILURE,
                http_status=http_status,
                latency_ms=latency,
                error_message=error_message,
                validation_errors=diagnostics,
                response_data=response_data,
                checked_at=checked_at,
            )

        snapshot = snapshot_response(response)
        sample = to_json(snapshot.data)
        metadata = {
            "statusText": response.reason_phrase,
            "contentType": snapshot.header("content-type"),
            "contentLength": snapshot.header("content-length"),
            "server": snapshot.header("server"),
            "date": snapshot.header("date", checked_at.isoformat() + "Z"),
            "responseSize": len(sample),
        }
        logger.info(f"Response received for {monitor.name}: HTTP {response.status_code}, {len(sample)} chars")

        result = validate(snapshot, monitor.validation_rules)

        return ProbeOutcome(
            monitor_id=monitor.id,
            status=SUCCESS if result.is_valid else FAILURE,
            http_status=response.status_code,
            latency_ms=latency,
            error_message=None if result.is_valid else f"Validation failed: {', '.join(result.errors)}",
            validation_errors=list(result.errors),
            response_data=sample[:self.sample_limit],
            response_metadata=metadata,
            checked_at=checked_at,
        )

    def _describe_error(self, error: Exception) -> Tuple[str, List[str], Optional[int], Optional[str]]:
        """Build (summary, diagnostic lines, http status, body sample) for a failed probe."""
        response = getattr(error, "response", None)
        if isinstance(response, httpx.Response):
            snapshot = snapshot_response(response)
            server = snapshot.header("server")
            content_type = snapshot.header("content-type")
            preview = body_preview(snapshot.data)
            summary = getattr(error, "message", None) or f"HTTP {response.status_code} {response.reason_phrase}"
            return (
                f"{summary}. Server: {server}, Content-Type: {content_type}. Response: {preview}",
                [
                    f"Status: {response.status_code} {response.reason_phrase}",
                    f"Server: {server}",
                    f"Content-Type: {content_type}",
                    f"Response preview: {preview}",
                ],
                response.status_code,
                to_json(snapshot.data)[:self.sample_limit],
            )

        transport_error = None
        if isinstance(error, httpx.TransportError):
            transport_error = to_transport_error(error)
        elif isinstance(error.__cause__, httpx.TransportError):
            # Secondary auth request that never completed
            transport_error = to_transport_error(error.__cause__)

        if transport_error is not None:
            if isinstance(error, httpx.TransportError):
                summary = f"{transport_error.code}: {transport_error.message}"
            else:
                summary = str(error)
            lines = [
                f"Error Code: {transport_error.code}",
                f"Message: {transport_error.message}",
            ]
            if transport_error.os_error:
                lines.append(f"OS Error: {transport_error.os_error}")
            if transport_error.address:
                lines.append(f"Address: {transport_error.address}")
            return summary, lines, None, None

        message = getattr(error, "message", None) or str(error) or type(error).__name__
        return message, [message], None, None
