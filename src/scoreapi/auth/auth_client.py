"""Authentication flows for users, business customers and direct integrations.

Every flow that yields an access/refresh pair routes it through the
TokenManager with the tenant type that matches the login endpoint used.
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar
from urllib.parse import quote

from pydantic import BaseModel, ValidationError

from scoreapi.auth.token_manager import TokenManager
from scoreapi.http.pipeline import RequestOptions, RequestPipeline
from scoreapi.models.auth import (
    CustomerLoginRequest,
    CustomerLoginResponse,
    DirectLoginRequest,
    DirectLoginResponse,
    PasswordRecoveryRequest,
    PasswordResetRequest,
    RegisterRequest,
    RegisterResponse,
    UserLoginRequest,
    UserLoginResponse,
)
from scoreapi.models.errors import ErrorCode, ScoreAPIError
from scoreapi.models.tokens import TenantType, TokenRefreshResponse

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def _parse(model: type[ModelT], data: Any) -> ModelT:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ScoreAPIError(
            f"Invalid {model.__name__} payload: {e.error_count()} errors",
            ErrorCode.UNKNOWN_ERROR,
            details=data,
        ) from e


class AuthClient:
    """Login, registration, refresh and logout operations."""

    def __init__(self, http: RequestPipeline, token_manager: TokenManager):
        self.http = http
        self.token_manager = token_manager

    async def user_login(self, request: UserLoginRequest) -> UserLoginResponse:
        """Log an end user in with username and password.

        If the request carries a customer token it is sent as ctoken so the
        session is scoped to that business customer.
        """
        data = await self.http.post(
            "/users/login",
            request.to_payload(),
            options=RequestOptions(
                skip_auth=True,
                use_customer_token=bool(request.customer_token),
                customer_token=request.customer_token,
            ),
        )
        response = _parse(UserLoginResponse, data)

        await self.token_manager.save_tokens(
            response.access_token,
            response.refresh_token,
            response.expires_in,
            TenantType.USER,
        )
        logger.info(f"User {request.username} logged in")
        return response

    async def customer_login(
        self, request: CustomerLoginRequest
    ) -> CustomerLoginResponse:
        data = await self.http.post(
            "/customers/login",
            request.to_payload(),
            options=RequestOptions(skip_auth=True),
        )
        response = _parse(CustomerLoginResponse, data)

        await self.token_manager.save_tokens(
            response.access_token,
            response.refresh_token,
            response.expires_in,
            TenantType.CUSTOMER,
        )
        logger.info(f"Customer {request.username} logged in")
        return response

    async def direct_login(self, request: DirectLoginRequest) -> DirectLoginResponse:
        """Authenticate a B2B integration with its API key and secret."""
        data = await self.http.post(
            "/direct/login",
            request.to_payload(),
            options=RequestOptions(skip_auth=True),
        )
        response = _parse(DirectLoginResponse, data)

        await self.token_manager.save_tokens(
            response.access_token,
            response.refresh_token,
            response.expires_in,
            TenantType.DIRECT,
        )
        host = response.host.name if response.host else "unknown host"
        logger.info(f"Direct integration logged in ({host})")
        return response

    async def register(self, request: RegisterRequest) -> RegisterResponse:
        """Create a user account.

        Tokens are saved only when the server returns them; some deployments
        require email verification before issuing any.
        """
        data = await self.http.post(
            "/users/register",
            request.to_payload(),
            options=RequestOptions(skip_auth=True, use_customer_token=True),
        )
        response = _parse(RegisterResponse, data)
        await self._save_if_present(response)
        return response

    async def refresh_token(self) -> TokenRefreshResponse:
        """Refresh tokens now, using the tenant's refresh endpoint.

        Shares the pipeline's in-flight refresh, so an explicit refresh never
        races an automatic one.

        Raises:
            ScoreAPIError: TOKEN_REQUIRED if no refresh token is stored
        """
        return await self.http.refresh_tokens()

    async def logout(self) -> None:
        """Forget the stored tokens. Safe to call when logged out."""
        await self.token_manager.clear_tokens()
        logger.info("Logged out")

    async def request_password_reset(self, request: PasswordRecoveryRequest) -> None:
        await self.http.post(
            "/users/password-recovery",
            request.to_payload(),
            options=RequestOptions(skip_auth=True),
        )

    async def reset_password(self, request: PasswordResetRequest) -> None:
        await self.http.post(
            "/users/password-reset",
            request.to_payload(),
            options=RequestOptions(skip_auth=True),
        )

    async def exchange_pre_auth_token(self, token: str) -> RegisterResponse:
        """Trade a one-shot pre-auth token for a session."""
        data = await self.http.get(
            f"/users/preauth-token/{quote(token, safe='')}",
            options=RequestOptions(skip_auth=True),
        )
        response = _parse(RegisterResponse, data)
        await self._save_if_present(response)
        return response

    async def is_authenticated(self) -> bool:
        return await self.token_manager.has_tokens()

    async def get_tenant_type(self) -> TenantType | None:
        return await self.token_manager.get_tenant_type()

    async def _save_if_present(self, response: RegisterResponse) -> None:
        if not response.has_tokens():
            logger.debug("Response carried no tokens, nothing saved")
            return

        await self.token_manager.save_tokens(
            response.access_token,
            response.refresh_token,
            response.expires_in or 0,
            TenantType.USER,
        )
