"""Authentication request and response models.

Requests are immutable dataclasses that know how to render their JSON
payload. Responses are pydantic models, one per tenant, since each login
endpoint returns a fixed shape.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


@dataclass(frozen=True)
class UserLoginRequest:
    username: str
    password: str
    customer_token: str | None = None  # sent as ctoken, never in the body

    def to_payload(self) -> dict[str, str]:
        return {"username": self.username, "password": self.password}


@dataclass(frozen=True)
class CustomerLoginRequest:
    username: str
    password: str

    def to_payload(self) -> dict[str, str]:
        return {"username": self.username, "password": self.password}


@dataclass(frozen=True)
class DirectLoginRequest:
    """API key/secret pair for machine-to-machine (B2B) login."""

    api_key: str
    secret: str

    def to_payload(self) -> dict[str, str]:
        return {"apikey": self.api_key, "secret": self.secret}


@dataclass(frozen=True)
class RegisterRequest:
    email: str
    password: str
    first_name: str | None = None
    last_name: str | None = None
    mobile: str | None = None

    def to_payload(self) -> dict[str, str]:
        data = {"email": self.email, "password": self.password}

        if self.first_name:
            data["firstName"] = self.first_name
        if self.last_name:
            data["lastName"] = self.last_name
        if self.mobile:
            data["mobile"] = self.mobile

        return data


@dataclass(frozen=True)
class PasswordRecoveryRequest:
    email: str

    def to_payload(self) -> dict[str, str]:
        return {"email": self.email}


@dataclass(frozen=True)
class PasswordResetRequest:
    token: str
    new_password: str
    security_answer: str | None = None

    def to_payload(self) -> dict[str, str]:
        data = {"token": self.token, "newPassword": self.new_password}
        if self.security_answer:
            data["securityAnswer"] = self.security_answer
        return data


class _ApiModel(BaseModel):
    """Base for server payloads: camelCase on the wire, extras preserved."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )


class UserProfile(_ApiModel):
    id: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    mobile: str | None = None
    enrollment_id: str | None = None
    active: bool = True
    flags: Any = None
    created_at: str | None = None


class Customer(_ApiModel):
    id: str
    name: str
    email: str | None = None
    active: bool = True
    created_at: str | None = None


class CustomerHost(_ApiModel):
    """Integration metadata returned by direct login."""

    id: str
    customer_id: str
    name: str
    key: str
    active: bool = True


class LoginResponse(_ApiModel):
    access_token: str
    refresh_token: str
    expires_in: int


class UserLoginResponse(LoginResponse):
    user: UserProfile


class CustomerLoginResponse(LoginResponse):
    customer: Customer


class DirectLoginResponse(LoginResponse):
    host: CustomerHost | None = None


LoginResult = Union[UserLoginResponse, CustomerLoginResponse, DirectLoginResponse]


class RegisterResponse(_ApiModel):
    """Registration or pre-auth exchange result.

    Tokens are absent when the deployment requires verification first.
    """

    access_token: str | None = None
    refresh_token: str | None = None
    expires_in: int | None = None
    user: UserProfile | None = None

    def has_tokens(self) -> bool:
        return bool(self.access_token and self.refresh_token)
