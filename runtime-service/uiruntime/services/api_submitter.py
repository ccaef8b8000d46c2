"""
API Submitter
=============

Network side of `submit` actions that target an external endpoint.

Modes:
- http: real request with httpx (default)
- simulated: sleep, then succeed with a configured probability (preview
  parity with the hosted editor)

Only the newest submit counts: when a later submit starts before an earlier
one finishes, the earlier outcome is marked superseded and the caller skips
its follow-up actions.
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import httpx

from uiruntime.config import settings
from uiruntime.models.actions import SubmitAction
from uiruntime.utils.logging import get_logger, trace_async
from uiruntime.utils.templates import interpolate

logger = get_logger(__name__)

QUERY_METHODS = {"GET", "DELETE", "HEAD"}


class SubmitConfigurationError(ValueError):
    """Raised when a submit action cannot be turned into a request"""
    pass


@dataclass
class SubmitOutcome:
    success: bool
    status_code: Optional[int] = None
    data: Any = None
    error: Optional[str] = None
    superseded: bool = False


@dataclass
class PreparedRequest:
    method: str
    url: str
    headers: Dict[str, str]
    params: Optional[Dict[str, Any]] = None
    json: Optional[Dict[str, Any]] = None


def collect_fields(fields: Mapping[str, str], form_state: Mapping[str, Any]) -> Dict[str, Any]:
    """{paramName: form value} for every mapped form field id."""
    return {name: form_state.get(field_id) for name, field_id in fields.items()}


def prepare_request(action: SubmitAction, form_state: Mapping[str, Any], context: Mapping[str, Any]) -> PreparedRequest:
    """
    Build method, url, headers and payload for a submit action.

    {{path}} placeholders in the endpoint and header values are resolved
    against context (form values and session).
    """
    if not action.endpoint:
        raise SubmitConfigurationError("submit to api requires an endpoint")

    method = (action.method or "POST").upper()
    url = interpolate(action.endpoint, context)
    headers = {name: interpolate(value, context) for name, value in action.headers.items()}
    payload = collect_fields(action.fields, form_state)

    if method in QUERY_METHODS:
        params = {k: v for k, v in payload.items() if v is not None}
        return PreparedRequest(method=method, url=url, headers=headers, params=params)
    return PreparedRequest(method=method, url=url, headers=headers, json=payload)


class ApiSubmitter:
    """Sends submit requests and tracks which one is current."""

    def __init__(
        self,
        mode: str = None,
        timeout: float = None,
        success_rate: float = None,
        simulated_delay: float = None,
        rng: Optional[random.Random] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.mode = mode or settings.api_submit_mode
        self.timeout = timeout if timeout is not None else settings.api_submit_timeout
        self.success_rate = success_rate if success_rate is not None else settings.api_simulated_success_rate
        self.simulated_delay = simulated_delay if simulated_delay is not None else settings.api_simulated_delay_seconds
        self._rng = rng or random.Random()
        self._transport = transport
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    @trace_async("submit.api")
    async def submit(
        self,
        action: SubmitAction,
        form_state: Mapping[str, Any],
        context: Mapping[str, Any],
    ) -> SubmitOutcome:
        """
        Run one submit. Never raises for network failures.

        Raises:
            SubmitConfigurationError: http mode without an endpoint
        """
        self._generation += 1
        generation = self._generation

        if self.mode == "simulated":
            outcome = await self._simulate(action, form_state)
        else:
            request = prepare_request(action, form_state, context)
            outcome = await self._send(request)

        if generation != self._generation:
            outcome.superseded = True
            logger.info(
                "submit.api.superseded",
                extra={"generation": generation, "current": self._generation}
            )
        return outcome

    async def _simulate(self, action: SubmitAction, form_state: Mapping[str, Any]) -> SubmitOutcome:
        body = collect_fields(action.fields, form_state)
        logger.debug("submit.api.simulated", extra={"endpoint": action.endpoint, "fields": list(body)})
        if self.simulated_delay > 0:
            await asyncio.sleep(self.simulated_delay)
        if self._rng.random() < self.success_rate:
            return SubmitOutcome(success=True, data=body)
        return SubmitOutcome(success=False, error="Simulated request failure")

    async def _send(self, request: PreparedRequest) -> SubmitOutcome:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(
                    request.method,
                    request.url,
                    headers=request.headers,
                    params=request.params,
                    json=request.json,
                )
        except httpx.TimeoutException as e:
            logger.warning("submit.api.timeout", extra={"url": request.url, "timeout": self.timeout}, exc_info=e)
            return SubmitOutcome(success=False, error=f"Request timed out after {self.timeout}s")
        except httpx.InvalidURL as e:
            logger.warning("submit.api.invalid_url", extra={"url": request.url, "error": str(e)})
            return SubmitOutcome(success=False, error=f"Invalid URL: {e}")
        except httpx.HTTPError as e:
            logger.warning("submit.api.failed", extra={"url": request.url}, exc_info=e)
            return SubmitOutcome(success=False, error=str(e) or type(e).__name__)

        data = self._decode(response)
        if response.is_success:
            logger.info(
                "submit.api.succeeded",
                extra={"url": request.url, "method": request.method, "status_code": response.status_code}
            )
            return SubmitOutcome(success=True, status_code=response.status_code, data=data)

        logger.warning(
            "submit.api.rejected",
            extra={"url": request.url, "method": request.method, "status_code": response.status_code}
        )
        return SubmitOutcome(
            success=False,
            status_code=response.status_code,
            data=data,
            error=f"HTTP {response.status_code}",
        )

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return response.text
