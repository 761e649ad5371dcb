"""Tests for privilege dropping.

Syscalls are mocked; nothing here changes the test process identity.
"""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from procward.config import ServerConfig
from procward.exceptions import IdentityNotFoundError, PrivilegeChangeError
from procward.supervisor.privileges import PrivilegeDropper, change_privilege


@pytest.fixture
def identity_db():
    """Patch pwd/grp with a tiny identity database (www=1001, staff=50)."""
    users = {"www": SimpleNamespace(pw_uid=1001)}
    groups = {"www": SimpleNamespace(gr_gid=1001), "staff": SimpleNamespace(gr_gid=50)}

    def getpwnam(name: str) -> SimpleNamespace:
        return users[name]

    def getgrnam(name: str) -> SimpleNamespace:
        return groups[name]

    with patch("pwd.getpwnam", side_effect=getpwnam), patch("grp.getgrnam", side_effect=getgrnam):
        yield


@pytest.fixture
def mock_os():
    """Patch the os module used by the dropper; starts as root."""
    with patch("procward.supervisor.privileges.os") as mock:
        mock.geteuid.return_value = 0
        mock.getegid.return_value = 0
        yield mock


@pytest.mark.usefixtures("identity_db")
class TestDrop:
    """Tests for PrivilegeDropper.drop()."""

    def test_no_user_is_noop(self, mock_os: MagicMock) -> None:
        """Nothing configured: True and no syscalls."""
        assert PrivilegeDropper().drop(None) is True
        mock_os.setuid.assert_not_called()

    def test_switch_order_is_groups_gid_uid(self, mock_os: MagicMock) -> None:
        """Supplementary groups, then gid, then uid."""
        # Act
        result = PrivilegeDropper().drop("www", "staff")

        # Assert
        assert result is True
        switch_calls = [c for c in mock_os.method_calls if c[0] in ("initgroups", "setgid", "setuid")]
        assert [c[0] for c in switch_calls] == ["initgroups", "setgid", "setuid"]
        mock_os.initgroups.assert_called_once_with("www", 50)
        mock_os.setgid.assert_called_once_with(50)
        mock_os.setuid.assert_called_once_with(1001)

    def test_group_defaults_to_user(self, mock_os: MagicMock) -> None:
        """Without a group, the group named like the user is used."""
        PrivilegeDropper().drop("www")
        mock_os.setgid.assert_called_once_with(1001)

    def test_identity_already_matches_is_noop(self, mock_os: MagicMock) -> None:
        """Already running as the target: True, no syscalls."""
        # Arrange
        mock_os.geteuid.return_value = 1001
        mock_os.getegid.return_value = 1001

        # Act
        result = PrivilegeDropper().drop("www")

        # Assert
        assert result is True
        mock_os.initgroups.assert_not_called()
        mock_os.setgid.assert_not_called()
        mock_os.setuid.assert_not_called()

    def test_unknown_user_is_fatal_without_switch(self, mock_os: MagicMock) -> None:
        """Unknown user fails before any syscall."""
        with pytest.raises(IdentityNotFoundError) as exc_info:
            PrivilegeDropper().drop("nobody-here")

        assert exc_info.value.kind == "user"
        assert "nobody-here" in str(exc_info.value)
        mock_os.initgroups.assert_not_called()
        mock_os.setgid.assert_not_called()
        mock_os.setuid.assert_not_called()

    def test_unknown_group_is_fatal_without_switch(self, mock_os: MagicMock) -> None:
        """Unknown group fails before any syscall."""
        with pytest.raises(IdentityNotFoundError) as exc_info:
            PrivilegeDropper().drop("www", "wheel-ish")

        assert exc_info.value.kind == "group"
        mock_os.setgid.assert_not_called()
        mock_os.setuid.assert_not_called()

    def test_os_refusal_is_fatal(self, mock_os: MagicMock) -> None:
        """PermissionError from the switch becomes PrivilegeChangeError."""
        # Arrange
        mock_os.setgid.side_effect = PermissionError("Operation not permitted")

        # Act & Assert
        with pytest.raises(PrivilegeChangeError) as exc_info:
            PrivilegeDropper().drop("www")
        assert exc_info.value.exit_code == 5
        mock_os.setuid.assert_not_called()


class TestChangePrivilege:
    """Tests for change_privilege(config)."""

    def test_nothing_configured(self, tmp_path) -> None:
        """No user: True without calling the dropper."""
        dropper = MagicMock()
        assert change_privilege(ServerConfig(root_dir=tmp_path), dropper) is True
        dropper.drop.assert_not_called()

    def test_group_without_user_is_ignored(self, tmp_path) -> None:
        """A group alone does not trigger a drop."""
        dropper = MagicMock()
        assert change_privilege(ServerConfig(root_dir=tmp_path, group="staff"), dropper) is True
        dropper.drop.assert_not_called()

    def test_user_and_group_passed_through(self, tmp_path) -> None:
        """Configured user and group are handed to the dropper."""
        # Arrange
        dropper = MagicMock()
        dropper.drop.return_value = True

        # Act
        change_privilege(ServerConfig(root_dir=tmp_path, user="www", group="staff"), dropper)

        # Assert
        dropper.drop.assert_called_once_with("www", "staff")
