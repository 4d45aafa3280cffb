from pydantic_settings import BaseSettings
from typing import List

class Settings(BaseSettings):
    secret_key: str
    database_url: str
    backend_cors_origins: str = "http://localhost:3000"
    sql_echo: bool = False
    access_token_expire_minutes: int = 60
    default_currency: str = "USD"
    reject_mixed_currency: bool = False
    approval_cas_retries: int = 3
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "allow"

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.backend_cors_origins.split(",") if origin.strip()]
