import pytest

from calendar_digest.config import Settings


@pytest.fixture
def clean_env(monkeypatch):
    for key in (
        "SPREADSHEET_ID",
        "CONFIG_SHEET_NAME",
        "ADMIN_EMAIL",
        "RETRY_MAX_ATTEMPTS",
        "RETRY_BASE_DELAY_MS",
        "SEND_BATCH_SIZE",
        "SEND_BATCH_PAUSE_MS",
    ):
        monkeypatch.delenv(key, raising=False)


def test_defaults(clean_env):
    config = Settings(_env_file=None)

    assert config.CONFIG_SHEET_NAME == "Config"
    assert config.retry_policy() == {"max_attempts": 4, "base_delay": 1.0, "max_jitter": 1.0}
    assert config.batch_policy() == {"batch_size": 10, "batch_pause": 0.1}


def test_validate_configuration_reports_missing_keys(clean_env):
    result = Settings(_env_file=None).validate_configuration()

    assert result["valid"] is False
    assert result["missing"] == ["SPREADSHEET_ID"]
    assert result["available"] == ["CONFIG_SHEET_NAME"]
    assert result["message"] == "Missing required configuration: SPREADSHEET_ID"


def test_validate_configuration_ok(clean_env):
    result = Settings(_env_file=None, SPREADSHEET_ID="1AbCdEfGhIjKlMn").validate_configuration()

    assert result["valid"] is True
    assert result["message"] == "All required configuration is available"


def test_values_come_from_environment(clean_env, monkeypatch):
    monkeypatch.setenv("SEND_BATCH_SIZE", "25")
    monkeypatch.setenv("RETRY_BASE_DELAY_MS", "250")

    config = Settings(_env_file=None)

    assert config.batch_policy()["batch_size"] == 25
    assert config.retry_policy()["base_delay"] == 0.25


def test_masked_summary_truncates_identifiers(clean_env):
    config = Settings(
        _env_file=None,
        SPREADSHEET_ID="1AbCdEfGhIjKlMnOpQrSt",
        ADMIN_EMAIL="admin@example.com",
        GOOGLE_ACCESS_TOKEN="ya29.secret",
    )

    summary = config.masked_summary()

    assert summary["SPREADSHEET_ID"] == "1AbCdEfG..."
    assert summary["ADMIN_EMAIL"] == "admin@ex..."
    assert summary["has_google_access_token"] is True
    assert "ya29.secret" not in str(summary)
