from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    APP_ENV: str = "dev"          # dev-bootstrap only runs in dev and test
    APP_SECRET: str
    DB_URL: str

    # bearer tokens, issued and checked with the same issuer/algorithm
    JWT_ISS: str = "cuehall"
    JWT_ALG: str = "HS256"
    JWT_EXP_MIN: int = 12*60

    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: list[str] = ["*"]

    # display only, amounts are stored without a currency
    CURRENCY: str = "PHP"
    TZ: str = "UTC"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
