from typing import Literal

from dotenv import load_dotenv
from pydantic_settings import BaseSettings


class Config(BaseSettings):
    db_url: str
    env: Literal["prod", "dev"] = "prod"

    # Public base URL used for locally served gacha assets
    backend_url: str = "http://localhost:3011"
    local_asset_dir: str = "public/gacha"

    # Cloudinary, the provider disables itself when any credential is missing
    cloudinary_cloud_name: str = ""
    cloudinary_api_key: str = ""
    cloudinary_api_secret: str = ""
    cloudinary_gacha_folder: str = "gacha"

    # Wallhaven
    wallhaven_api_url: str = "https://wallhaven.cc/api/v1/search"
    wallhaven_api_key: str | None = None
    wallhaven_cache_ttl_seconds: int = 30 * 60  # 30 minutes

    # Number of candidates fetched per pull so every tier has a population
    pull_candidate_limit: int = 100

    # JWT & token settings
    # IMPORTANT: set in environment for production
    jwt_secret: str | None = None
    jwt_algorithm: str = "HS256"
    access_token_ttl_seconds: int = 15 * 60  # 15 minutes

    @property
    def is_dev(self) -> bool:
        return self.env == "dev"


load_dotenv()
settings = Config()  # pyright: ignore[reportCallIssue]
