import os
from dotenv import load_dotenv

load_dotenv()


class Settings:
    # HTTP
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    # Database
    POSTGRES_CONNECTION_STRING: str = os.getenv("POSTGRES_CONNECTION_STRING", "")

    # Payment gateway (PayPal REST)
    PAYMENT_BASE_URL: str = os.getenv("PAYMENT_BASE_URL", "https://api-m.sandbox.paypal.com")
    PAYMENT_CLIENT_ID: str = os.getenv("PAYMENT_CLIENT_ID", "")
    PAYMENT_CLIENT_SECRET: str = os.getenv("PAYMENT_CLIENT_SECRET", "")
    PAYMENT_TIMEOUT: float = float(os.getenv("PAYMENT_TIMEOUT", "15"))
    PAYMENT_CURRENCY: str = os.getenv("PAYMENT_CURRENCY", "USD")
    PAYMENT_RETURN_URL: str = os.getenv("PAYMENT_RETURN_URL", "http://localhost:5173/shop/paypal-return")
    PAYMENT_CANCEL_URL: str = os.getenv("PAYMENT_CANCEL_URL", "http://localhost:5173/shop/paypal-cancel")

    # Kafka
    KAFKA_BOOTSTRAP_SERVERS: str = os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092")
    KAFKA_TOPIC: str = os.getenv("KAFKA_TOPIC", "storefront.order-events")

    # Кэш (секунды)
    ORDER_CACHE_TTL: float = float(os.getenv("ORDER_CACHE_TTL", "300"))
    CART_CACHE_TTL: float = float(os.getenv("CART_CACHE_TTL", "120"))
    PRODUCT_CACHE_TTL: float = float(os.getenv("PRODUCT_CACHE_TTL", "300"))
    CACHE_MAX_SIZE: int = int(os.getenv("CACHE_MAX_SIZE", "100"))
    CACHE_SWEEP_INTERVAL: float = float(os.getenv("CACHE_SWEEP_INTERVAL", "600"))

    @property
    def DATABASE_URL(self) -> str:
        """Асинхронный URL для приложения"""
        return self.SYNC_DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://", 1)

    @property
    def SYNC_DATABASE_URL(self) -> str:
        """Синхронный URL для Alembic"""
        url = self.POSTGRES_CONNECTION_STRING
        if url.startswith("postgres://"):
            url = "postgresql://" + url[len("postgres://"):]
        return url


settings = Settings()
