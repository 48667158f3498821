from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, TypeVar

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .config import DraftSettings, EndpointPaths
from .errors import RemoteCallError
from .models.remote import (
    ClaimInstallRequest,
    ClaimInstallResponse,
    RemoteResponse,
    SaveProjectRequest,
    SaveProjectResponse,
    SignInRequest,
    SignInResponse,
    VerifyCodeRequest,
    VerifyCodeResponse,
)

logger = logging.getLogger(__name__)

ResponseT = TypeVar("ResponseT", bound=RemoteResponse)


class RemoteDraftClient:
    """JSON-over-HTTP client for the project backend."""

    def __init__(
        self,
        *,
        base_url: str,
        endpoints: EndpointPaths | None = None,
        timeout: float = 10.0,
        attempts: int = 1,
        retry_backoff: float = 0.5,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Backend root URL
            endpoints: Endpoint paths relative to ``base_url``
            timeout: Upper bound in seconds for one request attempt
            attempts: Total attempts for transport failures and timeouts
            retry_backoff: Delay in seconds between attempts
            http_client: Pre-built client (tests inject one with a mock transport)
        """
        self.endpoints = endpoints or EndpointPaths()
        self.timeout = timeout
        self.attempts = max(1, attempts)
        self.retry_backoff = retry_backoff
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
            headers={"Content-Type": "application/json"},
        )

    @classmethod
    def from_settings(cls, settings: DraftSettings) -> "RemoteDraftClient":
        return cls(
            base_url=settings.api_url,
            endpoints=settings.endpoints,
            timeout=settings.request_timeout,
            attempts=settings.request_attempts,
            retry_backoff=settings.retry_backoff,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def save_project(
        self,
        *,
        project_id: str | None,
        owner_id: str | None,
        project_data: Mapping[str, Any],
    ) -> SaveProjectResponse:
        request = SaveProjectRequest(
            project_id=project_id, owner_id=owner_id, project_data=project_data
        )
        response = await self._call(
            self.endpoints.save, request, SaveProjectResponse, failure_message="Unknown"
        )
        if not response.project_id:
            raise RemoteCallError(
                "Save response did not include a project id", endpoint=self.endpoints.save
            )
        return response

    async def sign_in(self, *, email: str, name: str) -> SignInResponse:
        request = SignInRequest(email=email, name=name)
        response = await self._call(
            self.endpoints.sign_in, request, SignInResponse, failure_message="Login failed"
        )
        if not response.id:
            raise RemoteCallError(
                "Sign-in response did not include an account id", endpoint=self.endpoints.sign_in
            )
        return response

    async def claim_install(
        self, *, install_token: str, email: str, desired_name: str
    ) -> ClaimInstallResponse:
        request = ClaimInstallRequest(
            install_token=install_token, email=email, desired_name=desired_name
        )
        response = await self._call(
            self.endpoints.claim_install,
            request,
            ClaimInstallResponse,
            failure_message="Unknown",
        )
        if not response.admin_key:
            raise RemoteCallError(
                "Claim response did not include an admin key",
                endpoint=self.endpoints.claim_install,
            )
        return response

    async def verify_code(self, *, code: str, email: str) -> VerifyCodeResponse:
        request = VerifyCodeRequest(code=code, email=email)
        return await self._call(
            self.endpoints.verify_code,
            request,
            VerifyCodeResponse,
            failure_message="Invalid/expired code",
        )

    async def _call(
        self,
        endpoint: str,
        request: BaseModel,
        response_model: type[ResponseT],
        *,
        failure_message: str,
    ) -> ResponseT:
        """POST ``request`` to ``endpoint`` and return the parsed ``ok`` response.

        Transport errors and timeouts are retried up to ``attempts`` times.
        Non-2xx statuses, malformed bodies and ``ok: false`` replies are not
        retried. Every failure is raised as ``RemoteCallError``.
        """
        body = request.model_dump(by_alias=True, mode="json")
        last_error = RemoteCallError("Request was not attempted", endpoint=endpoint)

        for attempt in range(1, self.attempts + 1):
            try:
                http_response = await asyncio.wait_for(
                    self._client.post(endpoint, json=body), timeout=self.timeout
                )
            except asyncio.TimeoutError:
                last_error = RemoteCallError(
                    f"Request timed out after {self.timeout:g}s", endpoint=endpoint
                )
            except httpx.TimeoutException as exc:
                last_error = RemoteCallError(f"Request timed out: {exc}", endpoint=endpoint)
            except httpx.TransportError as exc:
                last_error = RemoteCallError(f"Network error: {exc}", endpoint=endpoint)
            else:
                return self._parse(endpoint, http_response, response_model, failure_message)

            logger.warning(
                "Remote call attempt failed",
                extra={
                    "endpoint": endpoint,
                    "attempt": attempt,
                    "attempts": self.attempts,
                    "error": last_error.message,
                },
            )
            if attempt < self.attempts and self.retry_backoff > 0:
                await asyncio.sleep(self.retry_backoff)

        raise last_error

    def _parse(
        self,
        endpoint: str,
        http_response: httpx.Response,
        response_model: type[ResponseT],
        failure_message: str,
    ) -> ResponseT:
        status_code = http_response.status_code
        try:
            payload = http_response.json()
        except ValueError:
            payload = None

        if not isinstance(payload, dict):
            if http_response.is_success:
                raise RemoteCallError(
                    "Malformed response body", endpoint=endpoint, status_code=status_code
                )
            raise RemoteCallError(
                f"HTTP {status_code}", endpoint=endpoint, status_code=status_code
            )

        try:
            response = response_model.model_validate(payload)
        except PydanticValidationError as exc:
            raise RemoteCallError(
                f"Malformed response body: {exc.error_count()} invalid field(s)",
                endpoint=endpoint,
                status_code=status_code,
            ) from exc

        if not response.ok:
            message = response.error or (
                failure_message if http_response.is_success else f"HTTP {status_code}"
            )
            logger.info(
                "Remote call rejected",
                extra={"endpoint": endpoint, "status_code": status_code, "error": message},
            )
            raise RemoteCallError(message, endpoint=endpoint, status_code=status_code)

        if not http_response.is_success:
            raise RemoteCallError(
                f"HTTP {status_code}", endpoint=endpoint, status_code=status_code
            )

        return response


__all__ = ["RemoteDraftClient"]
