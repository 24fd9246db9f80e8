"""Identity-provider group directory.

Role changes made by an admin have to land in two places: the user
document and the identity provider's group membership (which is what ends
up in the caller's ``cognito:groups`` claim on the next sign-in).  Admins
also create accounts here before the matching user document is stored.

Backends:
- ``CognitoDirectory``: boto3 ``cognito-idp`` admin API, used when
  ``LB_USER_POOL_ID`` is set.
- ``LocalDirectory``: in-process directory for dev/tests.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable
from uuid import uuid4

from labboard.config import Settings, settings as default_settings
from labboard.exceptions import ConflictError, NotFoundError, StorageError

logger = logging.getLogger("labboard.identity")


@dataclass(frozen=True)
class DirectoryAccount:
    """A newly created account: the sign-in name and the stable subject id."""

    username: str
    user_id: str


@runtime_checkable
class GroupDirectory(Protocol):
    """Group membership and account state for identity-provider users."""

    name: str

    async def create_user(
        self, email: str, temporary_password: str | None = None, given_name: str | None = None
    ) -> DirectoryAccount: ...

    async def list_groups(self, username: str) -> list[str]: ...
    async def add_to_group(self, username: str, group: str) -> None: ...

    async def remove_from_group(self, username: str, group: str) -> None: ...

    async def disable_user(self, username: str) -> None: ...

    async def enable_user(self, username: str) -> None: ...


class LocalDirectory:
    """In-memory directory.  Group lists are created on first touch."""

    name = "local"

    def __init__(self, groups: dict[str, list[str]] | None = None) -> None:
        self._groups: dict[str, list[str]] = {u: list(g) for u, g in (groups or {}).items()}
        self._disabled: set[str] = set()
        self._accounts: dict[str, str] = {}

    def is_enabled(self, username: str) -> bool:
        return username not in self._disabled

    async def create_user(
        self, email: str, temporary_password: str | None = None, given_name: str | None = None
    ) -> DirectoryAccount:
        if email in self._accounts:
            raise ConflictError("An account with this email already exists")
        self._accounts[email] = str(uuid4())
        logger.info("Created account %s", email)
        return DirectoryAccount(username=email, user_id=self._accounts[email])

    async def list_groups(self, username: str) -> list[str]:
        return list(self._groups.get(username, []))

    async def add_to_group(self, username: str, group: str) -> None:
        groups = self._groups.setdefault(username, [])
        if group not in groups:
            groups.append(group)
        logger.info("Added %s to group %s", username, group)

    async def remove_from_group(self, username: str, group: str) -> None:
        groups = self._groups.get(username, [])
        if group in groups:
            groups.remove(group)
        logger.info("Removed %s from group %s", username, group)

    async def disable_user(self, username: str) -> None:
        self._disabled.add(username)
        logger.info("Disabled user %s", username)

    async def enable_user(self, username: str) -> None:
        self._disabled.discard(username)
        logger.info("Enabled user %s", username)


class CognitoDirectory:
    """Cognito user pool admin calls, run on a worker thread."""

    name = "cognito"

    def __init__(self, user_pool_id: str, region_name: str | None = None, client: Any = None) -> None:
        self.user_pool_id = user_pool_id
        self.region_name = region_name
        self._client = client

    @property
    def client(self):
        if self._client is None:
            import boto3

            self._client = boto3.client("cognito-idp", region_name=self.region_name)
        return self._client

    async def _call(self, operation: str, **kwargs: Any) -> dict[str, Any]:
        from botocore.exceptions import BotoCoreError, ClientError

        fn = getattr(self.client, operation)
        try:
            return await asyncio.to_thread(fn, UserPoolId=self.user_pool_id, **kwargs)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code", "")
            if code == "UserNotFoundException":
                raise NotFoundError("User not found in identity provider") from exc
            if code == "UsernameExistsException":
                raise ConflictError("An account with this email already exists") from exc
            raise StorageError(f"Cognito {operation} failed: {code or exc}") from exc
        except BotoCoreError as exc:
            raise StorageError(f"Cognito {operation} failed: {exc}") from exc

    async def create_user(
        self, email: str, temporary_password: str | None = None, given_name: str | None = None
    ) -> DirectoryAccount:
        kwargs: dict[str, Any] = {
            "Username": email,
            "UserAttributes": [
                {"Name": "email", "Value": email},
                {"Name": "email_verified", "Value": "true"},
                {"Name": "given_name", "Value": given_name or email.split("@")[0]},
            ],
        }
        if temporary_password:
            kwargs["TemporaryPassword"] = temporary_password
        resp = await self._call("admin_create_user", **kwargs)
        user = resp.get("User", {})
        username = user.get("Username") or email
        attrs = {a["Name"]: a["Value"] for a in user.get("Attributes", [])}
        return DirectoryAccount(username=username, user_id=attrs.get("sub") or username)

    async def list_groups(self, username: str) -> list[str]:
        groups: list[str] = []
        kwargs: dict[str, Any] = {"Username": username}
        while True:
            resp = await self._call("admin_list_groups_for_user", **kwargs)
            groups.extend(g["GroupName"] for g in resp.get("Groups", []))
            token = resp.get("NextToken")
            if not token:
                return groups
            kwargs["NextToken"] = token

    async def add_to_group(self, username: str, group: str) -> None:
        await self._call("admin_add_user_to_group", Username=username, GroupName=group)

    async def remove_from_group(self, username: str, group: str) -> None:
        await self._call("admin_remove_user_from_group", Username=username, GroupName=group)

    async def disable_user(self, username: str) -> None:
        await self._call("admin_disable_user", Username=username)

    async def enable_user(self, username: str) -> None:
        await self._call("admin_enable_user", Username=username)


def create_directory(config: Settings | None = None) -> GroupDirectory:
    """Cognito when a user pool is configured, otherwise the local directory."""
    config = config or default_settings
    user_pool_id = os.environ.get("LB_USER_POOL_ID", config.user_pool_id)
    if user_pool_id:
        return CognitoDirectory(user_pool_id, region_name=config.aws_region)
    logger.info("LB_USER_POOL_ID not set; using in-process group directory")
    return LocalDirectory()
