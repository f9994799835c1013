# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for exception handling and secret redaction."""
from __future__ import annotations

import pytest

from vm2vcd.core.exceptions import (
    ExecutionFailure,
    Fatal,
    ImportFailure,
    InvalidReason,
    MigrationSkip,
    NetworkResolutionFailure,
    PlacementFailure,
    PlacementReason,
    ValidationFailure,
    VcdError,
    Vm2VcdError,
    VMwareError,
    format_exception_for_cli,
    wrap_vcd,
    wrap_vmware,
)


@pytest.mark.unit
class TestExceptionHierarchy:
    """Test exception class hierarchy and basic functionality."""

    def test_base_exception_creation(self):
        err = Vm2VcdError(code=1, msg="Test error")

        assert err.code == 1
        assert err.msg == "Test error"
        assert err.cause is None
        assert err.context == {}

    def test_fatal_exception(self):
        err = Fatal(2, "Batch file not found")

        assert isinstance(err, Vm2VcdError)
        assert err.code == 2
        assert str(err) == "Batch file not found"

    def test_adapter_errors(self):
        assert isinstance(VMwareError(msg="vSphere connection failed"), Vm2VcdError)
        assert isinstance(VcdError(msg="login failed"), Vm2VcdError)

    def test_exception_with_context(self):
        err = Vm2VcdError(code=1, msg="Error").with_context(vm="web01", stage="placement")

        assert err.context["vm"] == "web01"
        assert err.context["stage"] == "placement"

    def test_wrappers_keep_cause(self):
        cause = ConnectionError("reset by peer")
        err = wrap_vmware("relocate rejected", cause, vm="web01")

        assert err.cause is cause
        assert err.code == 50
        assert wrap_vcd("query failed").code == 60


@pytest.mark.unit
class TestMigrationSkips:
    def test_all_skips_share_a_base(self):
        for cls in (ValidationFailure, PlacementFailure, NetworkResolutionFailure, ExecutionFailure, ImportFailure):
            assert issubclass(cls, MigrationSkip)

    def test_validation_reason_in_text(self):
        err = ValidationFailure(msg="web01 already exists", reason=InvalidReason.ALREADY_MIGRATED)
        assert err.reason_text() == "ValidationFailure[AlreadyMigrated]: web01 already exists"

    def test_placement_reason_in_text(self):
        err = PlacementFailure(msg="no room", reason=PlacementReason.STORAGE_POOL_NOT_FOUND)
        assert err.reason_text().startswith("PlacementFailure[StoragePoolNotFound]")

    def test_execution_failure_carries_task(self):
        err = ExecutionFailure(msg="task failed", task_id="task-42")
        assert err.task_id == "task-42"
        assert err.category == "ExecutionFailure"


@pytest.mark.security
class TestSecretRedaction:
    """Test that secrets are redacted from error contexts."""

    def test_password_redacted_in_context(self):
        err = Vm2VcdError(code=1, msg="Auth failed").with_context(
            username="admin",
            password="super_secret_123",
            host="vcenter.local",
        )

        err_dict = err.to_dict()

        assert err_dict["context"]["password"] == "***REDACTED***"
        assert err_dict["context"]["username"] == "admin"
        assert err_dict["context"]["host"] == "vcenter.local"

    def test_multiple_secrets_redacted(self):
        err = Vm2VcdError(code=1, msg="Error").with_context(
            api_key="secret-key-123",
            token="bearer-token-456",
            auth="basic-auth-789",
            normal_field="visible",
        )

        err_dict = err.to_dict()

        assert err_dict["context"]["api_key"] == "***REDACTED***"
        assert err_dict["context"]["token"] == "***REDACTED***"
        assert err_dict["context"]["auth"] == "***REDACTED***"
        assert err_dict["context"]["normal_field"] == "visible"

    def test_secret_in_nested_context(self):
        err = Vm2VcdError(code=1, msg="Error").with_context(
            vcd={"password": "secret123", "user": "administrator"},
        )

        err_dict = err.to_dict()

        assert err_dict["context"]["vcd"]["password"] == "***REDACTED***"
        assert err_dict["context"]["vcd"]["user"] == "administrator"

    def test_cli_message_never_shows_password(self):
        err = VMwareError(msg="login failed").with_context(host="vc01", password="hunter2")
        line = format_exception_for_cli(err, verbose=2)
        assert "hunter2" not in line
        assert "vc01" in line


@pytest.mark.unit
class TestExceptionExitCodes:
    def test_valid_exit_codes(self):
        for code in [0, 1, 2, 127, 255]:
            assert Vm2VcdError(code=code, msg="Test").code == code

    def test_out_of_range_codes_are_clamped(self):
        assert Vm2VcdError(code=256, msg="Too high").code == 255
        assert Vm2VcdError(code=-1, msg="Negative").code == 1

    def test_non_numeric_code_falls_back(self):
        assert Vm2VcdError(code="oops", msg="Test").code == 1


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
