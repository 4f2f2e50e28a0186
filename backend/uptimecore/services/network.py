"""Network service - protocol probes and outbound webhook requests.

Every probe handler returns a ProbeResult. Transport failures are folded
into ``status=False`` with the protocol status code when one exists, or a
synthetic code otherwise. Only an unsupported monitor type and a rejected
distributed dispatch are raised.
"""
import asyncio
import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import quote

import httpx
import jmespath
from jmespath.exceptions import JMESPathError

from ..config import settings, distributed_callback_url
from ..errors import DistributedDispatchError, UnsupportedMonitorTypeError
from ..models import Monitor
from ..utils import messages

logger = logging.getLogger(__name__)

NETWORK_ERROR = 5000
PING_ERROR = 5001

TYPE_PING = "ping"
TYPE_HTTP = "http"
TYPE_PAGESPEED = "pagespeed"
TYPE_HARDWARE = "hardware"
TYPE_DOCKER = "docker"
TYPE_PORT = "port"
TYPE_DISTRIBUTED_HTTP = "distributed_http"

PAGESPEED_API_URL = "https://pagespeedonline.googleapis.com/pagespeedonline/v5/runPagespeed"
PAGESPEED_CATEGORIES = ("seo", "accessibility", "best-practices", "performance")


@dataclass
class Timings:
    """Request phase durations in nanoseconds, reported by distributed probes."""
    dns_took: Optional[float] = None
    conn_took: Optional[float] = None
    connect_took: Optional[float] = None
    tls_took: Optional[float] = None
    first_byte_took: Optional[float] = None
    body_read_took: Optional[float] = None


@dataclass
class ProbeResult:
    """Normalized outcome of a single probe."""
    monitor_id: Any
    type: str
    status: bool
    code: int
    message: Optional[str] = None
    response_time: Optional[float] = None  # milliseconds
    payload: Any = None
    team_id: Optional[str] = None
    timings: Optional[Timings] = None


@dataclass
class TimedResponse:
    """Outcome of a timed operation. ``response_time`` is set even on failure."""
    response: Any
    response_time: int
    error: Optional[Exception] = None


@dataclass
class WebhookResult:
    status: bool
    code: int
    message: str
    payload: Any = None
    type: str = "webhook"


class NetworkService:
    """Executes protocol-specific health probes for monitors."""

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        docker_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        # Transports are injectable so tests can stand in for remote hosts
        self._transport = transport
        self._docker_transport = docker_transport
        self._handlers: dict[str, Callable[[Monitor], Awaitable[Optional[ProbeResult]]]] = {
            TYPE_PING: self.request_ping,
            TYPE_HTTP: self.request_http,
            TYPE_PAGESPEED: self.request_pagespeed,
            TYPE_HARDWARE: self.request_hardware,
            TYPE_DOCKER: self.request_docker,
            TYPE_PORT: self.request_port,
            TYPE_DISTRIBUTED_HTTP: self.request_distributed_http,
        }

    def _client(self, **kwargs) -> httpx.AsyncClient:
        kwargs.setdefault("timeout", settings.http_timeout)
        return httpx.AsyncClient(transport=self._transport, **kwargs)

    async def time_request(self, operation: Callable[[], Awaitable[Any]]) -> TimedResponse:
        """Time an async operation, capturing any exception it raises."""
        start = datetime.now()
        try:
            response = await operation()
            return TimedResponse(response=response, response_time=self._elapsed_ms(start))
        except Exception as e:
            return TimedResponse(response=None, response_time=self._elapsed_ms(start), error=e)

    @staticmethod
    def _elapsed_ms(start: datetime) -> int:
        return int((datetime.now() - start).total_seconds() * 1000)

    async def get_status(self, monitor: Monitor) -> Optional[ProbeResult]:
        """Run the probe matching ``monitor.type``.

        Returns None for distributed_http monitors, whose result arrives
        later through the callback endpoint.
        """
        monitor_type = monitor.type or "unknown"
        handler = self._handlers.get(monitor_type)
        if handler is None:
            raise UnsupportedMonitorTypeError(monitor_type)
        return await handler(monitor)

    async def request_ping(self, monitor: Monitor) -> ProbeResult:
        """Send a single ICMP echo using the system ping binary."""

        async def probe():
            proc = await asyncio.create_subprocess_exec(
                "ping", "-c", "1", "-W", str(settings.ping_timeout), monitor.url,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            try:
                stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=settings.ping_timeout + 5)
            except asyncio.TimeoutError:
                proc.kill()
                await proc.wait()
                raise
            output = stdout.decode(errors="replace")
            # Example line: "64 bytes from 8.8.8.8: icmp_seq=1 ttl=117 time=14.2 ms"
            match = re.search(r"time=(\d+\.?\d*)\s*ms", output)
            return {
                "host": monitor.url,
                "alive": proc.returncode == 0,
                "time": float(match.group(1)) if match else None,
                "output": output,
            }

        timed = await self.time_request(probe)
        if timed.error:
            logger.debug(f"Ping to {monitor.url} failed: {timed.error}")
            return ProbeResult(
                monitor_id=monitor.id,
                team_id=monitor.team_id,
                type=TYPE_PING,
                status=False,
                code=PING_ERROR,
                message=messages.PING_FAIL,
                response_time=timed.response_time,
                payload=timed.response,
            )

        return ProbeResult(
            monitor_id=monitor.id,
            team_id=monitor.team_id,
            type=TYPE_PING,
            status=timed.response["alive"],
            code=200,
            message=messages.PING_SUCCESS,
            response_time=timed.response_time,
            payload=timed.response,
        )

    async def request_http(self, monitor: Monitor, url: Optional[str] = None) -> ProbeResult:
        """GET the monitor URL and optionally match the response body.

        Matching runs only when ``expected_value`` is configured:
        1. ``json_path`` requires a JSON response and is applied with JMESPath
        2. An empty extraction fails the check
        3. ``match_method`` selects include, regex, or exact comparison
        """
        url = url or monitor.url
        headers = {}
        if monitor.secret is not None:
            headers["Authorization"] = f"Bearer {monitor.secret}"

        async def fetch():
            async with self._client(follow_redirects=True) as client:
                response = await client.get(url, headers=headers)
                response.raise_for_status()
                return response

        timed = await self.time_request(fetch)
        response = timed.response

        result = ProbeResult(
            monitor_id=monitor.id,
            team_id=monitor.team_id,
            type=monitor.type,
            status=False,
            code=NETWORK_ERROR,
            response_time=timed.response_time,
            payload=self._parse_body(response) if response is not None else None,
        )

        if timed.error:
            code = NETWORK_ERROR
            if isinstance(timed.error, httpx.HTTPStatusError):
                code = timed.error.response.status_code
            result.code = code
            result.message = messages.status_phrase(code, messages.HTTP_NETWORK_ERROR)
            return result

        result.code = response.status_code

        if not monitor.expected_value:
            result.status = True
            result.message = messages.status_phrase(response.status_code)
            return result

        logger.info(
            f"Job: [{monitor.name}]({monitor.id}) match result with expected value "
            f"(expected={monitor.expected_value!r}, json_path={monitor.json_path!r}, method={monitor.match_method!r})"
        )

        data = result.payload
        if monitor.json_path:
            if "application/json" not in response.headers.get("content-type", ""):
                result.message = messages.HTTP_NOT_JSON
                return result
            try:
                data = jmespath.search(monitor.json_path, data)
            except JMESPathError:
                result.message = messages.HTTP_JSON_PATH_ERROR
                return result

        if data is None:
            result.message = messages.HTTP_EMPTY_RESULT
            return result

        matched = self._match(self._stringify(data), monitor.expected_value, monitor.match_method)
        result.status = matched
        result.message = messages.HTTP_MATCH_SUCCESS if matched else messages.HTTP_MATCH_FAIL
        return result

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        if "application/json" in response.headers.get("content-type", ""):
            try:
                return response.json()
            except ValueError:
                return response.text
        return response.text

    @staticmethod
    def _stringify(value: Any) -> str:
        if isinstance(value, str):
            return value
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        if isinstance(value, (dict, list, bool)):
            return json.dumps(value, separators=(",", ":"))
        return str(value)

    @staticmethod
    def _match(value: str, expected: str, method: Optional[str]) -> bool:
        if method == "include":
            return expected in value
        if method == "regex":
            try:
                return re.search(expected, value) is not None
            except re.error as e:
                logger.warning(f"Invalid match regex {expected!r}: {e}")
                return False
        return value == expected

    async def request_pagespeed(self, monitor: Monitor) -> ProbeResult:
        """Run a Google PageSpeed Insights audit through the HTTP probe."""
        categories = "".join(f"&category={c}" for c in PAGESPEED_CATEGORIES)
        pagespeed_url = f"{PAGESPEED_API_URL}?url={quote(monitor.url, safe='')}{categories}"
        return await self.request_http(monitor, url=pagespeed_url)

    async def request_hardware(self, monitor: Monitor) -> ProbeResult:
        """Fetch the JSON metrics document served by a hardware agent."""
        return await self.request_http(monitor)

    async def request_docker(self, monitor: Monitor) -> ProbeResult:
        """Report whether a container is running, via the Docker Engine API socket."""
        result = ProbeResult(
            monitor_id=monitor.id,
            team_id=monitor.team_id,
            type=monitor.type,
            status=False,
            code=NETWORK_ERROR,
        )
        transport = self._docker_transport or httpx.AsyncHTTPTransport(uds=settings.docker_socket_path)

        async with httpx.AsyncClient(transport=transport, base_url="http://docker", timeout=settings.http_timeout) as client:
            try:
                response = await client.get("/containers/json", params={"all": "true"})
                response.raise_for_status()
                containers = response.json()
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"Docker container listing failed for {monitor.name}: {e}")
                result.message = messages.DOCKER_FAIL
                return result

            target = monitor.url
            container = next((c for c in containers if self._container_matches(c, target)), None)
            if container is None:
                result.code = 404
                result.message = messages.DOCKER_NOT_FOUND
                return result

            async def inspect():
                response = await client.get(f"/containers/{container['Id']}/json")
                response.raise_for_status()
                return response.json()

            timed = await self.time_request(inspect)

        result.response_time = timed.response_time
        if timed.error:
            result.message = messages.DOCKER_FAIL
            if isinstance(timed.error, httpx.HTTPStatusError):
                result.code = timed.error.response.status_code
                try:
                    result.message = timed.error.response.json().get("message") or messages.DOCKER_FAIL
                except ValueError:
                    pass
            return result

        state = (timed.response or {}).get("State") or {}
        result.status = state.get("Status") == "running"
        result.code = 200
        result.message = messages.DOCKER_SUCCESS
        result.payload = state
        return result

    @staticmethod
    def _container_matches(container: dict, target: str) -> bool:
        if container.get("Id", "").startswith(target):
            return True
        names = [name.lstrip("/") for name in container.get("Names") or []]
        return target.lstrip("/") in names

    async def request_port(self, monitor: Monitor) -> ProbeResult:
        """Open a TCP connection to host:port and close it straight away."""

        async def connect():
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(monitor.url, monitor.port),
                timeout=settings.port_timeout,
            )
            writer.close()
            await writer.wait_closed()
            return {"success": True}

        timed = await self.time_request(connect)
        result = ProbeResult(
            monitor_id=monitor.id,
            team_id=monitor.team_id,
            type=monitor.type,
            status=False,
            code=NETWORK_ERROR,
            message=messages.PORT_FAIL,
            response_time=timed.response_time,
        )
        if timed.error:
            return result

        result.status = timed.response["success"]
        result.code = 200
        result.message = messages.PORT_SUCCESS
        return result

    async def request_distributed_http(self, monitor: Monitor) -> None:
        """Ask the distributed probe network to check the monitor.

        The result is delivered to the callback endpoint; nothing is
        returned here.
        """
        body = {
            "id": monitor.id,
            "url": monitor.url,
            "callback": distributed_callback_url(),
        }
        headers = {
            "Content-Type": "application/json",
            "x-checkmate-key": settings.distributed_api_key or "",
        }
        try:
            async with self._client() as client:
                response = await client.post(settings.distributed_endpoint, json=body, headers=headers)
                response.raise_for_status()
                ack = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Distributed dispatch failed for monitor {monitor.id}: {e}")
            raise DistributedDispatchError(
                str(e), service="NetworkService", method="request_distributed_http"
            ) from e

        if isinstance(ack, dict) and ack.get("success") is False:
            logger.error(f"Distributed dispatch rejected for monitor {monitor.id}: {ack.get('message')}")
            raise DistributedDispatchError(
                ack.get("message") or "Dispatch rejected",
                service="NetworkService",
                method="request_distributed_http",
            )
        logger.debug(f"Distributed check dispatched for monitor {monitor.id}")

    async def request_webhook(self, platform: str, url: str, message: dict) -> WebhookResult:
        """POST a JSON notification to a webhook URL. Never raises."""
        try:
            async with self._client(timeout=10) as client:
                response = await client.post(url, json=message, headers={"Content-Type": "application/json"})
                response.raise_for_status()
            return WebhookResult(
                status=True,
                code=response.status_code,
                message=f"Successfully sent {platform} notification",
                payload=self._parse_body(response),
            )
        except Exception as e:
            response = e.response if isinstance(e, httpx.HTTPStatusError) else None
            status_code = response.status_code if response is not None else None
            body = self._parse_body(response) if response is not None else None
            logger.warning(
                f"Webhook request failed: {e} (platform={platform}, url={url}, "
                f"status={status_code}, response={body!r}, payload={message!r})"
            )
            return WebhookResult(
                status=False,
                code=status_code or NETWORK_ERROR,
                message=f"Failed to send {platform} notification",
                payload=body,
            )


# Global instance
network_service = NetworkService()
