"""Canonical Pydantic models shared across all graphme modules.

This is the single source of truth for data shapes in the project. The
models fall into three groups:

**Settings** -- loaded from ``appsettings.json``:
    :class:`RequestConfig` and :class:`AppConfiguration`.

**Identity** -- produced by the token acquirer:
    :class:`Account`, :class:`AuthenticationResult`, and
    :class:`DeviceCodeInfo`.

**API projection** -- produced by the API caller:
    :class:`UserProfile`.

All models use Pydantic v2. Settings keys follow the PascalCase names of
the settings file (``Instance``, ``TenantId``, ...) and also accept the
snake_case field names.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

DEFAULT_API_BASE_URL = "https://graph.microsoft.com/v1.0/"
"""API root used when the settings file has no ``GraphApiUrl``."""


# --- Settings ---


class RequestConfig(BaseModel):
    """HTTP settings applied to every request against the remote API."""

    model_config = ConfigDict(frozen=True)

    timeout: int = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")


class AppConfiguration(BaseModel):
    """Settings read once per run from the settings file.

    The identity fields have no defaults: a settings file without them is
    rejected by :func:`~graphme.config.load_app_configuration`. Instances
    are frozen after loading.

    Example::

        AppConfiguration(
            Instance="https://login.microsoftonline.com/",
            TenantId="common",
            ClientId="00000000-0000-0000-0000-000000000000",
        )
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        extra="ignore",
        str_strip_whitespace=True,
    )

    instance: str = Field(alias="Instance", min_length=1)
    tenant_id: str = Field(alias="TenantId", min_length=1)
    client_id: str = Field(alias="ClientId", min_length=1)
    api_base_url: str = Field(default=DEFAULT_API_BASE_URL, alias="GraphApiUrl")
    request: RequestConfig = Field(default_factory=RequestConfig, alias="Request")

    @field_validator("api_base_url", mode="before")
    @classmethod
    def _default_api_base_url(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_API_BASE_URL
        return value

    @property
    def authority(self) -> str:
        """The token-issuing authority: instance URL followed by the tenant."""
        return f"{self.instance}{self.tenant_id}"


# --- Identity ---


class Account(BaseModel):
    """A signed-in principal as recorded in the token cache.

    ``home_account_id`` is ``<oid>.<tid>`` from the id token and is the
    key under which the account's tokens are cached.
    """

    username: str
    home_account_id: str
    environment: str = Field(description="Host name of the authority")
    tenant_id: Optional[str] = None


class AuthenticationResult(BaseModel):
    """A delegated access token together with the account it belongs to."""

    access_token: str = Field(repr=False)
    account: Account
    expires_on: datetime
    scopes: list[str] = Field(default_factory=list)


class DeviceCodeInfo(BaseModel):
    """Response of the device authorization endpoint (:rfc:`8628` section 3.2).

    Microsoft's endpoint returns a ready-made ``message`` for the user;
    other providers do not, in which case one is built from the
    verification URI and the user code.
    """

    device_code: str
    user_code: str
    verification_uri: str = Field(
        validation_alias=AliasChoices("verification_uri", "verification_url")
    )
    expires_in: int = 900
    interval: int = 5
    message: str = ""

    @model_validator(mode="after")
    def _default_message(self) -> DeviceCodeInfo:
        if not self.message:
            self.message = (
                f"To sign in, use a web browser to open the page "
                f"{self.verification_uri} and enter the code {self.user_code} "
                f"to authenticate."
            )
        return self


# --- API projection ---


class UserProfile(BaseModel):
    """The three fields printed from the API's current-user resource.

    All three keys must be present in the response. ``displayName`` and
    ``mail`` may be ``null`` (for instance an account without a mailbox).
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    display_name: Optional[str] = Field(
        validation_alias=AliasChoices("displayName", "display_name"),
        serialization_alias="displayName",
    )
    mail: Optional[str] = Field(validation_alias=AliasChoices("mail", "email"))
