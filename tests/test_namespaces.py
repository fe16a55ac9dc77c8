"""
Tests for kernel policy namespace management.
"""

import os
import sys
from unittest.mock import patch

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from corral.apparmor.errors import AppArmorIOError
from corral.apparmor.host import HostCapabilities
from corral.apparmor.instance import Instance
from corral.apparmor.namespaces import PolicyNamespaceManager


@pytest.fixture
def namespaces(settings):
    return PolicyNamespaceManager(settings)


class TestNamespacePath:

    def test_path_under_securityfs(self, namespaces, settings, instance):
        path = namespaces.namespace_path(instance)
        assert path.parent == settings.namespaces_dir
        assert path.name.startswith("corral-c1_<")


class TestEnsure:
    """Tests for PolicyNamespaceManager.ensure."""

    def test_creates_directory(self, namespaces, stacking_host, instance):
        assert namespaces.ensure(stacking_host, instance) is True
        assert namespaces.namespace_path(instance).is_dir()

    def test_existing_directory_is_ok(self, namespaces, stacking_host, instance):
        namespaces.namespace_path(instance).mkdir()
        assert namespaces.ensure(stacking_host, instance) is True

    def test_noop_without_stacking(self, namespaces, admin_host, instance):
        assert namespaces.ensure(admin_host, instance) is False
        assert not namespaces.namespace_path(instance).exists()

    def test_noop_when_already_stacked(self, namespaces, instance):
        host = HostCapabilities(apparmor_available=True, apparmor_admin=True,
                                apparmor_stacking=True, apparmor_stacked=True)
        assert namespaces.ensure(host, instance) is False
        assert not namespaces.namespace_path(instance).exists()

    def test_other_errors_raise(self, settings, stacking_host, instance):
        # Parent directory missing
        os.rmdir(settings.namespaces_dir)
        namespaces = PolicyNamespaceManager(settings)
        with pytest.raises(AppArmorIOError):
            namespaces.ensure(stacking_host, instance)

    def test_mode(self, namespaces, stacking_host, instance):
        with patch('corral.apparmor.namespaces.os.mkdir') as mock_mkdir:
            namespaces.ensure(stacking_host, instance)
        mock_mkdir.assert_called_once_with(namespaces.namespace_path(instance), 0o755)


class TestTeardown:
    """Tests for PolicyNamespaceManager.teardown."""

    def test_removes_directory(self, namespaces, stacking_host, instance):
        namespaces.ensure(stacking_host, instance)
        assert namespaces.teardown(stacking_host, instance) is True
        assert not namespaces.namespace_path(instance).exists()

    def test_missing_directory_is_logged_not_raised(self, namespaces, stacking_host, instance, caplog):
        assert namespaces.teardown(stacking_host, instance) is False

        record = next(r for r in caplog.records if r.getMessage() == "Error removing apparmor namespace")
        assert record.extra_data['ns'] == str(namespaces.namespace_path(instance))
        assert record.extra_data['err']

    def test_busy_namespace_is_logged_not_raised(self, namespaces, stacking_host, instance):
        path = namespaces.namespace_path(instance)
        path.mkdir()
        (path / "profiles").mkdir()
        assert namespaces.teardown(stacking_host, instance) is False
        assert path.exists()

    def test_noop_without_stacking(self, namespaces, admin_host, instance, caplog):
        assert namespaces.teardown(admin_host, instance) is False
        assert "Error removing apparmor namespace" not in caplog.text

    def test_distinct_instances_distinct_namespaces(self, namespaces, stacking_host):
        a = Instance("default", "a")
        b = Instance("default", "b")
        namespaces.ensure(stacking_host, a)
        namespaces.ensure(stacking_host, b)
        namespaces.teardown(stacking_host, a)
        assert not namespaces.namespace_path(a).exists()
        assert namespaces.namespace_path(b).is_dir()
