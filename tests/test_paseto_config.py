import json

import pytest

from contribware.paseto_config import (
    DEFAULT_CONTEXT_KEY,
    LOOKUP_HEADER,
    LOOKUP_PARAM,
    Config,
    DataUnmarshalError,
    ExpiredTokenError,
    MissingTokenError,
    default_error_handler,
    default_validate,
    resolve_config,
)

SYMMETRIC_KEY = (b"secret" * 6)[:32]


def test_config_no_symmetric_key():
    with pytest.raises(ValueError):
        resolve_config()


def test_config_invalid_symmetric_key():
    with pytest.raises(ValueError):
        resolve_config(Config(symmetric_key=SYMMETRIC_KEY + SYMMETRIC_KEY))


def test_config_symmetric_with_public_key():
    with pytest.raises(ValueError):
        resolve_config(Config(symmetric_key=SYMMETRIC_KEY, public_key=bytes(32)))


def test_config_default():
    config = resolve_config(Config(symmetric_key=SYMMETRIC_KEY))
    assert config.token_lookup[0] == LOOKUP_HEADER
    assert config.token_lookup[1] == "Authorization"
    assert config.context_key == DEFAULT_CONTEXT_KEY
    assert config.validate is default_validate


def test_config_custom_lookup():
    config = resolve_config(
        Config(symmetric_key=SYMMETRIC_KEY, token_lookup=("", "Custom-Header"))
    )
    assert config.token_lookup == (LOOKUP_HEADER, "Custom-Header")

    config = resolve_config(Config(symmetric_key=SYMMETRIC_KEY, token_lookup=(LOOKUP_PARAM, "")))
    assert config.token_lookup == (LOOKUP_PARAM, "Authorization")


def test_default_validate_bad_json():
    with pytest.raises(DataUnmarshalError):
        default_validate(b"not json")


def test_default_validate_missing_expiration():
    with pytest.raises(ExpiredTokenError):
        default_validate(json.dumps({"data": "john"}).encode())


def test_default_error_handler_statuses():
    assert default_error_handler(None, MissingTokenError()).status_code == 400
    assert default_error_handler(None, ExpiredTokenError()).status_code == 401
    assert default_error_handler(None, DataUnmarshalError()).status_code == 401
    assert default_error_handler(None, MissingTokenError()).body == b"missing PASETO token"