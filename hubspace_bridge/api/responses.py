"""
Wire models for Afero cloud responses.

These are deliberately lenient: vendor payloads differ between device
classes and firmware versions. Nested lists that may contain bad entries
(functions, children) are kept as raw values so each entry can be
validated on its own and dropped without losing its siblings.
"""

from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class VendorModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# =============================================================================
# AUTH
# =============================================================================

class TokenResponse(VendorModel):
    """Token endpoint response (OpenID Connect)."""
    access_token: str
    expires_in: float
    refresh_token: Optional[str] = None
    refresh_expires_in: Optional[float] = None


class ErrorResponse(VendorModel):
    """Error body returned by both the token endpoint and the API."""
    error: Optional[str] = None
    error_description: Optional[str] = None


class AccountRef(VendorModel):
    account_id: str = Field(alias="accountId")


class AccountAccess(VendorModel):
    account: AccountRef


class AccountResponse(VendorModel):
    """Response of `GET /users/me`."""
    account_access: List[AccountAccess] = Field(default_factory=list, alias="accountAccess")


# =============================================================================
# DEVICE STATE
# =============================================================================

class AttributeState(VendorModel):
    """One attribute in a device state snapshot."""
    id: str
    value: Any = None
    data: Any = None
    updated_timestamp: Optional[int] = Field(default=None, alias="updatedTimestamp")

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> str:
        return str(value)

    @property
    def raw_value(self) -> Any:
        """The hex wire form when present, otherwise the decoded value."""
        return self.data if self.data is not None else self.value


class DeviceState(VendorModel):
    available: bool = False


class DeviceStatusResponse(VendorModel):
    """Response of `GET /accounts/{id}/devices/{deviceId}?expansions=attributes,state`."""
    device_id: Optional[str] = Field(default=None, alias="deviceId")
    attributes: List[AttributeState] = Field(default_factory=list)
    device_state: DeviceState = Field(default_factory=DeviceState, alias="deviceState")


# =============================================================================
# DEVICE GRAPH
# =============================================================================

class RawValueRange(VendorModel):
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None


class RawDeviceValue(VendorModel):
    key: str
    type: Optional[str] = None

    @field_validator("key", mode="before")
    @classmethod
    def _stringify_key(cls, value: Any) -> str:
        if value is None or value == "":
            raise ValueError("attribute key is empty")
        return str(value)


class RawFunctionValue(VendorModel):
    name: Optional[str] = None
    device_values: List[RawDeviceValue] = Field(default_factory=list, alias="deviceValues")
    range: Optional[RawValueRange] = None


class RawFunction(VendorModel):
    """One entry of a device's `description.functions` list."""
    function_class: str = Field(alias="functionClass")
    function_instance: Optional[str] = Field(default=None, alias="functionInstance")
    values: List[RawFunctionValue] = Field(default_factory=list)
    # Some payloads put keys directly on the function instead of in `values`
    device_values: List[RawDeviceValue] = Field(default_factory=list, alias="deviceValues")
    positional_index: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("positionalIndex", "outletIndex", "positional_index"),
    )


class RawDeviceInfo(VendorModel):
    manufacturer_name: Optional[str] = Field(default=None, alias="manufacturerName")
    model: Optional[str] = None
    device_class: Optional[str] = Field(default=None, alias="deviceClass")


class RawDescription(VendorModel):
    device: Optional[RawDeviceInfo] = None
    functions: List[Any] = Field(default_factory=list)

    @field_validator("functions", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class RawDevice(VendorModel):
    """One entry of `GET /accounts/{id}/metadevices`."""
    id: str
    device_id: Optional[str] = Field(default=None, alias="deviceId")
    type_id: Optional[str] = Field(default=None, alias="typeId")
    friendly_name: Optional[str] = Field(default=None, alias="friendlyName")
    description: Optional[RawDescription] = None
    children: List[Any] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> str:
        if value is None or value == "":
            raise ValueError("device id is empty")
        return str(value)

    @field_validator("children", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value
