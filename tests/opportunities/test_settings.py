import pytest

from opportunities.settings import ConfigError, Settings, get_settings, reset_settings_cache

REQUIRED = ("FB_EMAIL", "FB_PASSWORD", "SPREADSHEET_ID", "GOOGLE_CREDENTIALS")


@pytest.fixture(autouse=True)
def _reset_settings_cache(monkeypatch, tmp_path):
    # keep a developer's .env out of the picture
    monkeypatch.chdir(tmp_path)
    reset_settings_cache()
    yield
    reset_settings_cache()


def _set_required_env(monkeypatch, **overrides):
    defaults = {
        "FB_EMAIL": "scraper@example.com",
        "FB_PASSWORD": "pw",
        "SPREADSHEET_ID": "sheet-123",
        "GOOGLE_CREDENTIALS": "e30=",
    }
    defaults.update(overrides)
    for key, value in defaults.items():
        monkeypatch.setenv(key, value)


def test_get_settings_reads_environment(monkeypatch):
    _set_required_env(monkeypatch, SCRAPE_MAX_POSTS="20", TIMEZONE="UTC")

    settings = get_settings()

    assert settings.fb_email == "scraper@example.com"
    assert settings.fb_password.get_secret_value() == "pw"
    assert settings.scrape_max_posts == 20
    assert settings.timezone == "UTC"
    assert settings.cdp_endpoint == "ws://localhost:9222"
    assert settings.sources_tab == "Sources"
    assert settings.run_actor == "github-actions"


@pytest.mark.parametrize("missing", REQUIRED)
def test_missing_required_variable_raises_config_error(monkeypatch, missing):
    _set_required_env(monkeypatch)
    monkeypatch.delenv(missing)

    with pytest.raises(ConfigError) as exc:
        get_settings()

    assert missing in str(exc.value)


def test_config_error_is_runtime_error():
    assert issubclass(ConfigError, RuntimeError)


def test_reset_settings_cache_reloads(monkeypatch):
    _set_required_env(monkeypatch, SPREADSHEET_ID="first")
    assert get_settings().spreadsheet_id == "first"

    monkeypatch.setenv("SPREADSHEET_ID", "next")
    assert get_settings().spreadsheet_id == "first"

    reset_settings_cache()
    assert get_settings().spreadsheet_id == "next"


def test_delay_range_must_be_ordered(monkeypatch):
    _set_required_env(monkeypatch, SCRAPE_DELAY_MIN_MS="6000", SCRAPE_DELAY_MAX_MS="5000")

    with pytest.raises(ConfigError):
        get_settings()


def test_invalid_timezone_is_rejected(monkeypatch):
    _set_required_env(monkeypatch, TIMEZONE="Mars/Olympus_Mons")

    with pytest.raises(ConfigError):
        get_settings()


def test_blank_email_is_rejected(monkeypatch):
    _set_required_env(monkeypatch, FB_EMAIL="   ")

    with pytest.raises(ConfigError):
        get_settings()


def test_settings_are_frozen(settings: Settings):
    with pytest.raises(Exception):
        settings.scrape_max_posts = 99  # type: ignore[misc]


@pytest.mark.parametrize("name", ["FB_PASSWORD", "GOOGLE_CREDENTIALS"])
def test_blank_secret_is_rejected(monkeypatch, name):
    _set_required_env(monkeypatch, **{name: ""})

    with pytest.raises(ConfigError) as exc:
        get_settings()

    assert name in str(exc.value)
