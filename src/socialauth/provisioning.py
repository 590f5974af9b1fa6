"""User provisioning contract.

Account creation and login rules belong to the host site. The login flow
hands a normalized identity to whatever implements
UserProvisioningService and returns its response to the browser as is.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from aiohttp import web

from socialauth.flow import NormalizedIdentity


@runtime_checkable
class UserProvisioningService(Protocol):
    async def authenticate_user(
        self,
        name: str,
        email: str | None,
        plugin_scoped_id: str,
        access_token: dict,
        avatar_url: str | None,
        extra_data_json: str,
    ) -> web.StreamResponse:
        """Create or log in the local account and return the final response."""
        ...


async def hand_off(
    provisioning: UserProvisioningService, identity: NormalizedIdentity
) -> web.StreamResponse:
    """Call the provisioning service with an identity's fields."""
    return await provisioning.authenticate_user(
        identity.name,
        identity.email,
        identity.plugin_scoped_id,
        identity.access_token.to_dict(),
        identity.avatar_url,
        identity.extra_json,
    )
