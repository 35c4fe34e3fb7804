from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = "postgresql+asyncpg://ci:ci@localhost:5432/ci_builds"
    debug: bool = False
    # Default page size for build listings
    per_page: int = 25

    model_config = SettingsConfigDict(env_prefix="CI_BUILD_API_")


settings = Settings()
