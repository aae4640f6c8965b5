from __future__ import annotations

import pytest

from estatehub.config import DEV_JWT_SECRET, Settings

PROD_OK = dict(
    _env_file=None,
    app_env="prod",
    jwt_secret="a" * 48,
    refresh_token_pepper="b" * 48,
    refresh_cookie_secure=True,
    cors_allow_origins=["https://app.estatehub.example"],
)


def test_local_defaults_are_permissive():
    s = Settings(_env_file=None, app_env="local")
    assert s.jwt_secret == DEV_JWT_SECRET
    assert s.access_token_minutes == 15
    assert s.refresh_token_days == 7
    assert s.refresh_cookie_max_age == 7 * 24 * 60 * 60


def test_prod_accepts_hardened_settings():
    s = Settings(**PROD_OK)
    assert s.refresh_cookie_secure


@pytest.mark.parametrize(
    "override",
    [
        {"jwt_secret": DEV_JWT_SECRET},
        {"refresh_token_pepper": "dev-pepper-change-me"},
        {"refresh_cookie_secure": False},
        {"cors_allow_origins": ["*"]},
        {"cors_allow_origins": "*"},
    ],
)
def test_prod_rejects_dev_defaults(override):
    with pytest.raises(ValueError):
        Settings(**{**PROD_OK, **override})
