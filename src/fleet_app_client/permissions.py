"""
Permission and role vocabulary shared with the App Service.

`ResourceType` and `Permission` values are the raw codes used on the
wire. `RoleAuthorization` is the caller-facing way to describe the
access an invitee should receive.
"""
from dataclasses import dataclass
from enum import Enum

from fleet_app_client.errors import UnknownPermissionError
from fleet_app_client.models import Authorization


class ResourceType(str, Enum):
    ORGANIZATION = "organization"
    LOCATION = "location"
    ROBOT = "robot"


class Permission(str, Enum):
    READ_ORGANIZATION = "read_organization"
    WRITE_ORGANIZATION = "write_organization"
    READ_ORGANIZATION_MEMBERS = "read_organization_members"
    WRITE_ORGANIZATION_MEMBERS = "write_organization_members"
    READ_LOCATION = "read_location"
    WRITE_LOCATION = "write_location"
    READ_ROBOT = "read_robot"
    WRITE_ROBOT = "write_robot"
    CONTROL_ROBOT = "control_robot"
    READ_ROBOT_CONFIG = "read_robot_config"
    WRITE_ROBOT_CONFIG = "write_robot_config"
    READ_ROBOT_LOGS = "read_robot_logs"
    READ_FRAGMENT = "read_fragment"
    WRITE_FRAGMENT = "write_fragment"

    @classmethod
    def from_code(cls, code: str) -> "Permission":
        """Maps a raw code to its member by exact value."""
        try:
            return cls(code)
        except ValueError:
            raise UnknownPermissionError(code) from None


class Role(str, Enum):
    OWNER = "owner"
    OPERATOR = "operator"


@dataclass(frozen=True)
class RoleAuthorization:
    """
    A role on a single resource, e.g. operator of one robot.

    Rendered to an `Authorization` message whose id is
    `<resource_type>_<role>` and whose identity is left for the
    service to fill in.
    """
    role: Role
    resource_type: ResourceType
    resource_id: str
    organization_id: str

    def to_message(self) -> Authorization:
        return Authorization(
            authorization_type="role",
            authorization_id=f"{self.resource_type.value}_{self.role.value}",
            resource_type=self.resource_type.value,
            resource_id=self.resource_id,
            identity_id="",
            organization_id=self.organization_id,
        )
