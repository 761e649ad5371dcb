"""Process privilege dropping.

Switches the running process to a less privileged user and group after
the server has bound its (possibly privileged) port. The switch is
irreversible.

Order matters: supplementary groups, then gid, then uid. Once the uid is
changed the process no longer has permission to change its groups.
"""

from __future__ import annotations

__all__ = [
    "PrivilegeDropper",
    "change_privilege",
]

import logging
import os

from procward.config import ServerConfig
from procward.exceptions import IdentityNotFoundError, PrivilegeChangeError
from procward.models import Identity, SupervisorEvent

from .log_config import log_event


class PrivilegeDropper:
    """Resolves a target identity and switches the process to it."""

    def resolve(self, user: str, group: str) -> Identity:
        """Look up uid and gid in the system identity database.

        Raises:
            IdentityNotFoundError: If the user or group does not exist.
        """
        import grp
        import pwd

        try:
            uid = pwd.getpwnam(user).pw_uid
        except KeyError as e:
            raise IdentityNotFoundError("user", user) from e

        try:
            gid = grp.getgrnam(group).gr_gid
        except KeyError as e:
            raise IdentityNotFoundError("group", group) from e

        return Identity(user=user, group=group, uid=uid, gid=gid)

    def drop(self, user: str | None, group: str | None = None) -> bool:
        """Switch the process to user:group.

        Args:
            user: Target user name. None means nothing to do.
            group: Target group name (defaults to user).

        Returns:
            True once the process runs as the target (or nothing was asked).

        Raises:
            IdentityNotFoundError: If user or group cannot be resolved.
                Raised before any switch is attempted.
            PrivilegeChangeError: If the OS refuses the switch.
        """
        if user is None:
            return True
        group = group or user

        log_event(
            logging.WARNING,
            SupervisorEvent(
                event="privilege_changing",
                message=f"Changing privileges to {user}:{group}",
                details={"user": user, "group": group},
            ),
        )

        target = self.resolve(user, group)
        if os.geteuid() == target.uid and os.getegid() == target.gid:
            return True

        try:
            os.initgroups(target.user, target.gid)
            os.setgid(target.gid)
            os.setuid(target.uid)
        except PermissionError as e:
            raise PrivilegeChangeError(f"Couldn't change user and group to {user}:{group}: {e}") from e

        log_event(
            logging.INFO,
            SupervisorEvent(
                event="privilege_changed",
                message=f"Running as {user}:{group}",
                details={"uid": target.uid, "gid": target.gid},
            ),
        )
        return True


def change_privilege(config: ServerConfig, dropper: PrivilegeDropper | None = None) -> bool:
    """Change process user/group to those in the configuration.

    A group without a user is ignored.

    Args:
        config: Server configuration with user and group.
        dropper: Dropper to use (a new one if None).

    Returns:
        True on success or when nothing is configured.
    """
    if config.user is None:
        if config.group is not None:
            log_event(
                logging.WARNING,
                SupervisorEvent(
                    event="privilege_group_ignored",
                    message=f"Group {config.group} is ignored because no user is configured",
                ),
            )
        return True

    if config.group is not None:
        intent = f"About to change privilege to group {config.group} and user {config.user}"
    else:
        intent = f"About to change privilege to user {config.user}"
    log_event(logging.DEBUG, SupervisorEvent(event="privilege_change_requested", message=intent))

    return (dropper or PrivilegeDropper()).drop(config.user, config.group)
