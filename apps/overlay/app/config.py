from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # runtime env
    env: str = "dev"
    port: int = 3000

    # public URL this service is reachable at (Render sets RENDER_EXTERNAL_URL)
    public_base_url: Optional[str] = Field(default=None, validation_alias="RENDER_EXTERNAL_URL")

    # upstream collaborators
    omdb_api_key: str = ""
    omdb_base_url: str = "http://www.omdbapi.com/"
    cinemeta_base_url: str = "https://v3-cinemeta.strem.io"

    # http surface
    cors_origins: str = "*"
    image_fetch_timeout: Optional[float] = None  # None -> httpx default

    # badge rendering
    badge_font_path: Optional[str] = None

    # addon behaviour
    catalog_rating_badges: bool = True
    contact_email: str = "your-email@example.com"

    class Config:
        env_file = ".env"
        populate_by_name = True

    @model_validator(mode="after")
    def _default_public_base_url(self) -> "Settings":
        if not self.public_base_url:
            self.public_base_url = f"http://localhost:{self.port}"
        self.public_base_url = self.public_base_url.strip().rstrip("/")
        return self


settings = Settings()


def get_settings() -> Settings:
    return settings
