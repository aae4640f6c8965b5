from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


DEV_JWT_SECRET = "dev-change-me"
DEV_REFRESH_PEPPER = "dev-pepper-change-me"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ---- App ----
    app_env: str = "local"  # local|dev|prod
    database_url: str = "sqlite:///./estatehub.db"

    # ---- CORS (used by main.py) ----
    cors_allow_origins: list[str] | str = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://localhost:4173",
    ]

    # ---- Access tokens ----
    jwt_secret: str = DEV_JWT_SECRET
    jwt_algorithm: str = "HS256"
    jwt_issuer: str = "estatehub"
    access_token_minutes: int = 15

    # ---- Refresh tokens ----
    refresh_token_days: int = 7
    refresh_token_pepper: str = DEV_REFRESH_PEPPER
    refresh_cookie_name: str = "refreshToken"
    refresh_cookie_path: str = "/api/auth"
    refresh_cookie_secure: bool = False
    refresh_cookie_samesite: str = "strict"

    # ---- Passwords ----
    password_pbkdf2_iters: int = 210_000

    # ---- Pagination ----
    page_size_default: int = 10
    page_size_max: int = 100

    def model_post_init(self, __context) -> None:
        env = (self.app_env or "local").strip().lower()
        is_prod = env in ("prod", "production")

        if is_prod:
            if self.jwt_secret == DEV_JWT_SECRET:
                raise ValueError("SECURITY: jwt_secret must be set in prod")
            if self.refresh_token_pepper == DEV_REFRESH_PEPPER:
                raise ValueError("SECURITY: refresh_token_pepper must be set in prod")
            if not self.refresh_cookie_secure:
                raise ValueError("SECURITY: refresh_cookie_secure must be enabled in prod")

            origins = self.cors_allow_origins
            if origins == "*" or origins == ["*"] or (isinstance(origins, str) and "*" in origins):
                raise ValueError("SECURITY: cors_allow_origins wildcard is not allowed in prod")

    @property
    def refresh_cookie_max_age(self) -> int:
        return int(self.refresh_token_days) * 24 * 60 * 60


settings = Settings()
