"""
Client for the fleet-management App Service.

`AppClient` turns each domain operation into exactly one remote call:
it builds a fresh request from the arguments, invokes the procedure on
the stub and hands back the part of the response the caller needs.
Remote failures propagate unchanged; nothing here retries, batches or
walks pages on the caller's behalf.

All calls must be authenticated by the surrounding transport.
"""
import logging
from typing import Any, Dict, Iterable, List

from fleet_app_client.client.broadcast import BroadcastStream
from fleet_app_client.client.connection import RPCConnection
from fleet_app_client.client.stub import AppServiceStub
from fleet_app_client.models import (
    Authorization,
    AuthorizedPermissions,
    CheckPermissionsRequest,
    CreateOrganizationInviteRequest,
    DeleteOrganizationInviteRequest,
    DeleteOrganizationMemberRequest,
    Fragment,
    GetFragmentRequest,
    GetLocationRequest,
    GetOrganizationRequest,
    GetRobotPartLogsRequest,
    GetRobotPartRequest,
    GetRobotPartsRequest,
    GetRobotRequest,
    ListAuthorizationsRequest,
    ListLocationsRequest,
    ListOrganizationMembersRequest,
    ListOrganizationMembersResponse,
    ListOrganizationsRequest,
    ListRobotsRequest,
    Location,
    LogEntry,
    NewRobotRequest,
    Organization,
    OrganizationInvite,
    ResendOrganizationInviteRequest,
    Robot,
    RobotPart,
    RobotPartLogPage,
    TailRobotPartLogsRequest,
    UpdateRobotPartRequest,
)
from fleet_app_client.permissions import Permission, ResourceType, RoleAuthorization

logger = logging.getLogger(__name__)


class AppClient:
    """Facade over the App Service stub."""

    def __init__(self, stub: AppServiceStub):
        self._stub = stub

    @classmethod
    def from_connection(cls, connection: RPCConnection) -> "AppClient":
        return cls(AppServiceStub(connection))

    async def list_organizations(self) -> List[Organization]:
        """List all the organizations the authenticated user has access to."""
        response = await self._stub.ListOrganizations(ListOrganizationsRequest())
        return response.organizations

    async def get_organization(self, organization_id: str) -> Organization:
        response = await self._stub.GetOrganization(GetOrganizationRequest(organization_id=organization_id))
        return response.organization

    async def list_locations(self, organization: Organization) -> List[Location]:
        """List the locations of `organization` the user has access to."""
        response = await self._stub.ListLocations(ListLocationsRequest(organization_id=organization.id))
        return response.locations

    async def get_location(self, location_id: str) -> Location:
        response = await self._stub.GetLocation(GetLocationRequest(location_id=location_id))
        return response.location

    async def list_robots(self, location: Location) -> List[Robot]:
        """List the robots of `location` the user has access to."""
        response = await self._stub.ListRobots(ListRobotsRequest(location_id=location.id))
        return response.robots

    async def get_robot(self, robot_id: str) -> Robot:
        response = await self._stub.GetRobot(GetRobotRequest(id=robot_id))
        return response.robot

    async def list_robot_parts(self, robot: Robot) -> List[RobotPart]:
        """List the parts of `robot`."""
        response = await self._stub.GetRobotParts(GetRobotPartsRequest(robot_id=robot.id))
        return response.parts

    async def get_robot_part(self, part_id: str) -> RobotPart:
        response = await self._stub.GetRobotPart(GetRobotPartRequest(id=part_id))
        return response.part

    async def update_robot_part(self, part_id: str, name: str, robot_config: Dict[str, Any]) -> RobotPart:
        """Rename a robot part and replace its configuration document."""
        request = UpdateRobotPartRequest(id=part_id, name=name, robot_config=robot_config)
        response = await self._stub.UpdateRobotPart(request)
        return response.part

    async def get_logs(self, part: RobotPart, errors_only: bool = False, page_token: str = "") -> RobotPartLogPage:
        """
        Get one page of logs for `part`, newest first.

        Pass the returned `next_page_token` back as `page_token` to fetch the
        following page; an empty token asks for the first one.
        """
        request = GetRobotPartLogsRequest(id=part.id, errors_only=errors_only, page_token=page_token)
        return await self._stub.GetRobotPartLogs(request)

    def tail_logs(self, part: RobotPart, errors_only: bool = False) -> BroadcastStream[List[LogEntry]]:
        """
        Follow the logs of `part` as they arrive, newest first within each batch.

        The returned stream may be subscribed to any number of times; the
        remote stream opens with the first subscriber and is cancelled when
        the last one detaches.
        """
        request = TailRobotPartLogsRequest(id=part.id, errors_only=errors_only)
        response = self._stub.TailRobotPartLogs(request)
        logger.debug(f"Tailing logs of robot part {part.id} (errors_only={errors_only})")
        batches = (event.logs async for event in response)
        return BroadcastStream(batches, on_cancel=response.cancel)

    async def list_authorizations(self, organization_id: str, resource_ids: Iterable[str] = ()) -> List[Authorization]:
        """List the authorizations in an organization, optionally for specific resources only."""
        request = ListAuthorizationsRequest(organization_id=organization_id, resource_ids=list(resource_ids))
        response = await self._stub.ListAuthorizations(request)
        return response.authorizations

    async def check_permissions(self, resource_type: ResourceType, resource_id: str,
                                permissions: Iterable[Permission]) -> List[Permission]:
        """
        Return the subset of `permissions` the user holds on the resource.

        A resource the service reports nothing for yields an empty list.
        A code this client does not know raises `UnknownPermissionError`.
        """
        request = CheckPermissionsRequest(permissions=[
            AuthorizedPermissions(
                resource_type=resource_type.value,
                resource_id=resource_id,
                permissions=[permission.value for permission in permissions],
            )
        ])
        response = await self._stub.CheckPermissions(request)
        if not response.authorized_permissions:
            return []
        return [Permission.from_code(code) for code in response.authorized_permissions[0].permissions]

    async def list_organization_members(self, organization: Organization) -> ListOrganizationMembersResponse:
        """List the members and pending invites of an organization."""
        return await self._stub.ListOrganizationMembers(
            ListOrganizationMembersRequest(organization_id=organization.id))

    async def create_organization_invite(self, organization: Organization, email: str,
                                         authorizations: Iterable[RoleAuthorization]) -> OrganizationInvite:
        """Invite `email` to join `organization` with the given roles."""
        request = CreateOrganizationInviteRequest(
            organization_id=organization.id,
            email=email,
            authorizations=[authorization.to_message() for authorization in authorizations],
        )
        response = await self._stub.CreateOrganizationInvite(request)
        return response.invite

    async def resend_organization_invite(self, organization: Organization, email: str) -> OrganizationInvite:
        request = ResendOrganizationInviteRequest(organization_id=organization.id, email=email)
        response = await self._stub.ResendOrganizationInvite(request)
        return response.invite

    async def delete_organization_invite(self, organization: Organization, email: str) -> None:
        request = DeleteOrganizationInviteRequest(organization_id=organization.id, email=email)
        await self._stub.DeleteOrganizationInvite(request)

    async def delete_organization_member(self, organization: Organization, user_id: str) -> None:
        request = DeleteOrganizationMemberRequest(organization_id=organization.id, user_id=user_id)
        await self._stub.DeleteOrganizationMember(request)

    async def new_machine(self, name: str, location_id: str) -> str:
        """Create a new machine called `name` in `location_id` and return its id."""
        response = await self._stub.NewRobot(NewRobotRequest(name=name, location=location_id))
        return response.id

    async def get_fragment(self, fragment_id: str) -> Fragment:
        response = await self._stub.GetFragment(GetFragmentRequest(id=fragment_id))
        return response.fragment
