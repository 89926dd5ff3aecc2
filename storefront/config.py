from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix='STOREFRONT_', env_file='.env', extra='ignore')

    ENVIRONMENT: str = 'development'  # development / production

    PRODUCTION_API_URL: str = 'https://api.storefront.example.com/api'
    LOCAL_API_URL: str = 'http://localhost:5000/api'
    REQUEST_TIMEOUT: float = 30.0

    IDENTITY_PROVIDER_URL: str = ''
    IDENTITY_PROVIDER_ANON_KEY: str = ''

    SESSION_STORAGE: str = 'memory'  # memory / file / none
    SESSION_STORAGE_PATH: str = '.storefront-session.json'

    LOG_LEVEL: str = 'INFO'
    LOG_JSON: bool = False

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == 'production'

    @property
    def api_base_url(self) -> str:
        url = self.PRODUCTION_API_URL if self.is_production else self.LOCAL_API_URL
        return url.rstrip('/')


settings = Settings()
