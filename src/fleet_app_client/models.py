"""
Data Models for the App Service messages.

Defines the entity records returned by the remote fleet service and one
request/response pair per remote procedure. Every message is a frozen
dataclass, so a record handed back to the caller can never be changed
and re-sent; requests are always built fresh from scalar arguments.

Every field has a zero-value default, the same way the remote schema
treats absent fields. Unknown keys in received JSON are ignored.
"""
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime
from enum import Enum
import json
from typing import Any, Dict, List, Optional, Union, get_args, get_origin, get_type_hints


def _encode(value: Any) -> Any:
    if is_dataclass(value):
        return {f.name: _encode(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_encode(item) for item in value]
    if isinstance(value, dict):
        return {key: _encode(item) for key, item in value.items()}
    return value


def _zero_value(hint: Any) -> Any:
    origin = get_origin(hint)
    if origin is list:
        return []
    if origin is dict:
        return {}
    if hint in (str, int, float, bool):
        return hint()
    return None


def _decode(hint: Any, value: Any) -> Any:
    if value is None:
        # An explicit null reads like an absent field.
        return _zero_value(hint)

    origin = get_origin(hint)
    if origin is Union:
        # Optional[X]
        inner = [arg for arg in get_args(hint) if arg is not type(None)]
        return _decode(inner[0], value)
    if origin is list:
        (item_hint,) = get_args(hint)
        return [_decode(item_hint, item) for item in value]
    if origin is dict:
        return dict(value)

    if hint is datetime:
        return datetime.fromisoformat(value)
    if isinstance(hint, type) and is_dataclass(hint):
        return hint.from_dict(value)
    if isinstance(hint, type) and issubclass(hint, Enum):
        return hint(value)
    return value


@dataclass(frozen=True, kw_only=True)
class BaseMessage:
    """Base class for every message exchanged with the App Service."""

    def to_dict(self) -> Dict[str, Any]:
        return _encode(self)

    def to_json(self) -> str:
        """Converts the message to a JSON string."""
        return json.dumps(self.to_dict())

    def to_bytes(self) -> bytes:
        """Converts the message to UTF-8 encoded bytes for MQTT."""
        return self.to_json().encode('utf-8')

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        """Builds the message from decoded JSON, ignoring unknown keys."""
        if not isinstance(data, dict):
            raise TypeError(f"{cls.__name__} expects a JSON object, got {type(data).__name__}")
        hints = get_type_hints(cls)
        kwargs = {
            f.name: _decode(hints[f.name], data[f.name])
            for f in fields(cls)
            if f.name in data
        }
        return cls(**kwargs)

    @classmethod
    def from_bytes(cls, payload: bytes):
        return cls.from_dict(json.loads(payload))


# --- Entities ---

@dataclass(frozen=True, kw_only=True)
class Organization(BaseMessage):
    """Top-level access and billing boundary."""
    id: str = ""
    name: str = ""
    created_on: Optional[datetime] = None
    public_namespace: str = ""
    default_region: str = ""
    cid: str = ""


@dataclass(frozen=True, kw_only=True)
class LocationOrganization(BaseMessage):
    organization_id: str = ""
    primary: bool = False


@dataclass(frozen=True, kw_only=True)
class Location(BaseMessage):
    """Grouping of robots under an organization."""
    id: str = ""
    name: str = ""
    parent_location_id: str = ""
    organizations: List[LocationOrganization] = field(default_factory=list)
    created_on: Optional[datetime] = None
    robot_count: int = 0


@dataclass(frozen=True, kw_only=True)
class Robot(BaseMessage):
    """A managed machine. `location` holds the owning location id."""
    id: str = ""
    name: str = ""
    location: str = ""
    last_access: Optional[datetime] = None
    created_on: Optional[datetime] = None


@dataclass(frozen=True, kw_only=True)
class RobotPart(BaseMessage):
    """A configurable unit of a robot. `robot_config` is an open document."""
    id: str = ""
    name: str = ""
    dns_name: str = ""
    secret: str = ""
    robot: str = ""
    location_id: str = ""
    robot_config: Dict[str, Any] = field(default_factory=dict)
    last_access: Optional[datetime] = None
    main_part: bool = False
    fqdn: str = ""
    local_fqdn: str = ""
    created_on: Optional[datetime] = None


@dataclass(frozen=True, kw_only=True)
class LogEntry(BaseMessage):
    host: str = ""
    level: str = ""
    time: Optional[datetime] = None
    logger_name: str = ""
    message: str = ""
    caller: Dict[str, Any] = field(default_factory=dict)
    stack: str = ""
    fields: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True, kw_only=True)
class Authorization(BaseMessage):
    """Access grant relating an identity to a resource."""
    authorization_type: str = ""
    authorization_id: str = ""
    resource_type: str = ""
    resource_id: str = ""
    identity_id: str = ""
    organization_id: str = ""
    identity_type: str = ""


@dataclass(frozen=True, kw_only=True)
class AuthorizedPermissions(BaseMessage):
    """Raw permission codes for one resource."""
    resource_type: str = ""
    resource_id: str = ""
    permissions: List[str] = field(default_factory=list)


@dataclass(frozen=True, kw_only=True)
class OrganizationMember(BaseMessage):
    user_id: str = ""
    emails: List[str] = field(default_factory=list)
    date_added: Optional[datetime] = None
    last_login: Optional[datetime] = None


@dataclass(frozen=True, kw_only=True)
class OrganizationInvite(BaseMessage):
    """A pending invitation tying an email to an organization."""
    organization_id: str = ""
    email: str = ""
    created_on: Optional[datetime] = None
    authorizations: List[Authorization] = field(default_factory=list)


@dataclass(frozen=True, kw_only=True)
class Fragment(BaseMessage):
    """A named, reusable configuration document."""
    id: str = ""
    name: str = ""
    fragment: Dict[str, Any] = field(default_factory=dict)
    organization_owner: str = ""
    public: bool = False
    created_on: Optional[datetime] = None
    organization_name: str = ""
    robot_part_count: int = 0
    organization_count: int = 0
    only_used_by_owner: bool = False


# --- Requests and responses, one pair per procedure ---

@dataclass(frozen=True, kw_only=True)
class ListOrganizationsRequest(BaseMessage):
    pass


@dataclass(frozen=True, kw_only=True)
class ListOrganizationsResponse(BaseMessage):
    organizations: List[Organization] = field(default_factory=list)


@dataclass(frozen=True, kw_only=True)
class GetOrganizationRequest(BaseMessage):
    organization_id: str = ""


@dataclass(frozen=True, kw_only=True)
class GetOrganizationResponse(BaseMessage):
    organization: Optional[Organization] = None


@dataclass(frozen=True, kw_only=True)
class ListLocationsRequest(BaseMessage):
    organization_id: str = ""


@dataclass(frozen=True, kw_only=True)
class ListLocationsResponse(BaseMessage):
    locations: List[Location] = field(default_factory=list)


@dataclass(frozen=True, kw_only=True)
class GetLocationRequest(BaseMessage):
    location_id: str = ""


@dataclass(frozen=True, kw_only=True)
class GetLocationResponse(BaseMessage):
    location: Optional[Location] = None


@dataclass(frozen=True, kw_only=True)
class ListRobotsRequest(BaseMessage):
    location_id: str = ""


@dataclass(frozen=True, kw_only=True)
class ListRobotsResponse(BaseMessage):
    robots: List[Robot] = field(default_factory=list)


@dataclass(frozen=True, kw_only=True)
class GetRobotRequest(BaseMessage):
    id: str = ""


@dataclass(frozen=True, kw_only=True)
class GetRobotResponse(BaseMessage):
    robot: Optional[Robot] = None


@dataclass(frozen=True, kw_only=True)
class GetRobotPartsRequest(BaseMessage):
    robot_id: str = ""


@dataclass(frozen=True, kw_only=True)
class GetRobotPartsResponse(BaseMessage):
    parts: List[RobotPart] = field(default_factory=list)


@dataclass(frozen=True, kw_only=True)
class GetRobotPartRequest(BaseMessage):
    id: str = ""


@dataclass(frozen=True, kw_only=True)
class GetRobotPartResponse(BaseMessage):
    part: Optional[RobotPart] = None
    config_json: str = ""


@dataclass(frozen=True, kw_only=True)
class UpdateRobotPartRequest(BaseMessage):
    id: str = ""
    name: str = ""
    robot_config: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, kw_only=True)
class UpdateRobotPartResponse(BaseMessage):
    part: Optional[RobotPart] = None


@dataclass(frozen=True, kw_only=True)
class GetRobotPartLogsRequest(BaseMessage):
    id: str = ""
    errors_only: bool = False
    page_token: str = ""


@dataclass(frozen=True, kw_only=True)
class GetRobotPartLogsResponse(BaseMessage):
    """One page of logs, newest first, plus the token of the next page."""
    logs: List[LogEntry] = field(default_factory=list)
    next_page_token: str = ""


RobotPartLogPage = GetRobotPartLogsResponse


@dataclass(frozen=True, kw_only=True)
class TailRobotPartLogsRequest(BaseMessage):
    id: str = ""
    errors_only: bool = False


@dataclass(frozen=True, kw_only=True)
class TailRobotPartLogsResponse(BaseMessage):
    logs: List[LogEntry] = field(default_factory=list)


@dataclass(frozen=True, kw_only=True)
class ListAuthorizationsRequest(BaseMessage):
    organization_id: str = ""
    resource_ids: List[str] = field(default_factory=list)


@dataclass(frozen=True, kw_only=True)
class ListAuthorizationsResponse(BaseMessage):
    authorizations: List[Authorization] = field(default_factory=list)


@dataclass(frozen=True, kw_only=True)
class CheckPermissionsRequest(BaseMessage):
    permissions: List[AuthorizedPermissions] = field(default_factory=list)


@dataclass(frozen=True, kw_only=True)
class CheckPermissionsResponse(BaseMessage):
    authorized_permissions: List[AuthorizedPermissions] = field(default_factory=list)


@dataclass(frozen=True, kw_only=True)
class ListOrganizationMembersRequest(BaseMessage):
    organization_id: str = ""


@dataclass(frozen=True, kw_only=True)
class ListOrganizationMembersResponse(BaseMessage):
    organization_id: str = ""
    members: List[OrganizationMember] = field(default_factory=list)
    invites: List[OrganizationInvite] = field(default_factory=list)


@dataclass(frozen=True, kw_only=True)
class CreateOrganizationInviteRequest(BaseMessage):
    organization_id: str = ""
    email: str = ""
    authorizations: List[Authorization] = field(default_factory=list)


@dataclass(frozen=True, kw_only=True)
class CreateOrganizationInviteResponse(BaseMessage):
    invite: Optional[OrganizationInvite] = None


@dataclass(frozen=True, kw_only=True)
class ResendOrganizationInviteRequest(BaseMessage):
    organization_id: str = ""
    email: str = ""


@dataclass(frozen=True, kw_only=True)
class ResendOrganizationInviteResponse(BaseMessage):
    invite: Optional[OrganizationInvite] = None


@dataclass(frozen=True, kw_only=True)
class DeleteOrganizationInviteRequest(BaseMessage):
    organization_id: str = ""
    email: str = ""


@dataclass(frozen=True, kw_only=True)
class DeleteOrganizationInviteResponse(BaseMessage):
    pass


@dataclass(frozen=True, kw_only=True)
class DeleteOrganizationMemberRequest(BaseMessage):
    organization_id: str = ""
    user_id: str = ""


@dataclass(frozen=True, kw_only=True)
class DeleteOrganizationMemberResponse(BaseMessage):
    pass


@dataclass(frozen=True, kw_only=True)
class NewRobotRequest(BaseMessage):
    name: str = ""
    location: str = ""


@dataclass(frozen=True, kw_only=True)
class NewRobotResponse(BaseMessage):
    id: str = ""


@dataclass(frozen=True, kw_only=True)
class GetFragmentRequest(BaseMessage):
    id: str = ""


@dataclass(frozen=True, kw_only=True)
class GetFragmentResponse(BaseMessage):
    fragment: Optional[Fragment] = None
