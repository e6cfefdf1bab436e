import logging

import pytest

from avlookup.config import (
    DEFAULT_JAVDB_BASE,
    DEFAULT_MAX_REDIRECTS,
    DEFAULT_TIMEOUT_SECONDS,
    ScraperConfig,
    apply_verbosity,
    get_configuration,
    logger,
)


def test_get_configuration_happy_path(mocker):
    config_data = """
[general]
debug = true

[network]
proxy = http://127.0.0.1:8080
timeout = 12.5
max_redirects = 3

[javdb]
base_url = https://mirror.example.com/
cookie = over18=1

[dmm]
enabled = yes
api_id = API
affiliate_id = AFF-990
"""
    mocker.patch("builtins.open", mocker.mock_open(read_data=config_data))
    mocker.patch("os.path.exists", return_value=True)

    config = get_configuration(environ={})

    assert config.debug is True
    assert config.proxy == "http://127.0.0.1:8080"
    assert config.timeout == 12.5
    assert config.max_redirects == 3
    assert config.javdb_base_url == "https://mirror.example.com"
    assert config.session_cookie == "over18=1"
    assert config.catalog_enabled is True


def test_get_configuration_missing_file_uses_defaults(mocker):
    mocker.patch("os.path.exists", return_value=False)

    config = get_configuration(environ={})

    assert config == ScraperConfig()
    assert config.javdb_base_url == DEFAULT_JAVDB_BASE
    assert config.timeout == DEFAULT_TIMEOUT_SECONDS
    assert config.max_redirects == DEFAULT_MAX_REDIRECTS
    assert config.catalog_enabled is False


def test_environment_overrides_file(mocker):
    config_data = """
[javdb]
base_url = https://file.example.com
"""
    mocker.patch("builtins.open", mocker.mock_open(read_data=config_data))
    mocker.patch("os.path.exists", return_value=True)
    environ = {
        "AV_JAVDB_BASE": "https://env.example.com",
        "AV_JAVDB_COOKIE": "token=abc",
        "AV_HTTP_PROXY": "socks5://proxy:1080",
        "AV_USE_DMM": "1",
        "DMM_API_ID": "id",
        "DMM_AFFILIATE_ID": "aff",
        "AV_DEBUG": "on",
    }

    config = get_configuration(environ=environ)

    assert config.javdb_base_url == "https://env.example.com"
    assert config.session_cookie == "token=abc"
    assert config.proxy == "socks5://proxy:1080"
    assert config.debug is True
    assert config.catalog_enabled is True


def test_catalog_needs_both_credentials(mocker):
    mocker.patch("os.path.exists", return_value=False)

    config = get_configuration(environ={"AV_USE_DMM": "1", "DMM_API_ID": "id"})

    assert config.use_catalog is True
    assert config.catalog_credentials is False
    assert config.catalog_enabled is False


def test_credentials_without_enable_flag_stay_disabled(mocker):
    mocker.patch("os.path.exists", return_value=False)

    config = get_configuration(
        environ={"DMM_API_ID": "id", "DMM_AFFILIATE_ID": "aff"}
    )

    assert config.catalog_enabled is False


@pytest.mark.parametrize(
    "section, value, message",
    [
        ("timeout", "soon", "must be a number"),
        ("timeout", "-1", "must be positive"),
        ("max_redirects", "many", "must be an integer"),
        ("max_redirects", "-2", "must not be negative"),
    ],
)
def test_invalid_numbers_raise(mocker, section, value, message):
    config_data = f"""
[network]
{section} = {value}
"""
    mocker.patch("builtins.open", mocker.mock_open(read_data=config_data))
    mocker.patch("os.path.exists", return_value=True)

    with pytest.raises(ValueError, match=message):
        get_configuration(environ={})


def test_apply_verbosity_sets_logger_level():
    apply_verbosity(ScraperConfig(debug=True))
    assert logger.level == logging.DEBUG
    apply_verbosity(ScraperConfig(debug=False))
    assert logger.level == logging.INFO
