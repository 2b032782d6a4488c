from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	# Database
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")

	# Session tokens (JWT carrying the server-side session id as jti)
	jwt_secret_key: str = Field(default="change-me", validation_alias="JWT_SECRET_KEY")
	jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")
	access_token_expire_minutes: int = Field(default=120, validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES")
	# Sessions unused for this long are marked expired by the sweep; 0 disables
	session_idle_minutes: int = Field(default=0, validation_alias="SESSION_IDLE_MINUTES")

	# Assessment status sweep (pending -> open -> closed by time)
	status_sweep_seconds: int = Field(default=60, validation_alias="STATUS_SWEEP_SECONDS")

	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
