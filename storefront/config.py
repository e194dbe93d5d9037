# storefront/config.py
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):

    #App
    app_name: str = "storefront-api"
    app_version: str = "0.1.0"
    app_description: str = "Storefront, support desk and admin API"
    log_level: str = "INFO"
    allowed_origins: str = "*"

    #Firebase
    firebase_service_account_key: str = ""
    firebase_project_id: str = ""
    firebase_client_email: str = ""
    firebase_private_key: str = ""
    firebase_storage_bucket: str = ""

    #Stripe
    stripe_secret_key: str = ""
    checkout_currency: str = "usd"
    checkout_allowed_countries: str = "US"
    stripe_webhook_secret: str = ""

    #Email
    resend_api_key: str = ""
    resend_from_email: str = "orders@send.shopblacktshirts.com"
    resend_support_email: str = ""
    store_name: str = "ShopBlackTShirts"
    site_url: str = "https://www.shopblacktshirts.com"

    #Catalog
    product_list_max_limit: int = 100

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def origins(self) -> List[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()] or ["*"]

    @property
    def allowed_countries(self) -> List[str]:
        return [c.strip().upper() for c in self.checkout_allowed_countries.split(",") if c.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
