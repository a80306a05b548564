import pytest
from admitlayer.core.errors import (
    AdmitLayerError,
    CacheSyncTimeout,
    ConfigurationError,
    ExitCode,
    LeadershipInitError,
    PolicyApplicationError,
    format_error_message,
    main_with_error_handling,
)


@pytest.mark.parametrize(
    "error, expected",
    [
        (ConfigurationError("bad settings"), ExitCode.CONFIG_ERROR),
        (CacheSyncTimeout("failed to wait for cache sync"), ExitCode.CACHE_SYNC_TIMEOUT),
        (LeadershipInitError("lease name required"), ExitCode.LEADERSHIP_ERROR),
        (AdmitLayerError("boom"), ExitCode.UNKNOWN_ERROR),
        (RuntimeError("boom"), ExitCode.UNKNOWN_ERROR),
        (KeyboardInterrupt(), ExitCode.INTERRUPTED),
    ],
)
def test_exit_codes(error, expected):
    @main_with_error_handling(log_errors=False)
    def entrypoint() -> int:
        raise error

    assert entrypoint() == expected


def test_success_passes_through():
    @main_with_error_handling()
    def entrypoint() -> int:
        return ExitCode.SUCCESS

    assert entrypoint() == 0


def test_policy_application_error_fields():
    error = PolicyApplicationError(
        "failed to apply policy forbid-privileged rules ['check: privileged']",
        policy="forbid-privileged",
        failed_rules=["check: privileged"],
    )

    assert error.policy == "forbid-privileged"
    assert error.failed_rules == ["check: privileged"]
    assert error.exit_code == ExitCode.UNKNOWN_ERROR


def test_format_error_message_includes_details():
    error = CacheSyncTimeout("failed to wait for cache sync", details={"stage": "leader", "term": 2})

    assert format_error_message(error) == "failed to wait for cache sync (stage=leader, term=2)"
    assert format_error_message(ConfigurationError("bad")) == "bad"
