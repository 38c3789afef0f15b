import asyncio
import logging
import time
from collections import OrderedDict
from typing import Callable, Generic, Hashable, Optional, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class TTLCache(Generic[K, V]):
    """Read-through кэш с временем жизни записи.

    Только для отображения: решения по остаткам и оплате
    всегда принимаются по базе, не по кэшу.
    """

    def __init__(
        self,
        name: str,
        ttl: float,
        max_size: int = 100,
        clock: Callable[[], float] = time.monotonic
    ):
        self.name = name
        self._ttl = ttl
        self._max_size = max_size
        self._clock = clock
        self._entries: "OrderedDict[K, tuple[float, V]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: K) -> Optional[V]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: K, value: V) -> None:
        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self._max_size:
            # Вытесняем самую старую запись
            self._entries.popitem(last=False)
        self._entries[key] = (self._clock() + self._ttl, value)

    def delete(self, key: K) -> bool:
        return self._entries.pop(key, None) is not None

    def delete_prefix(self, prefix: str) -> int:
        keys = [key for key in self._entries if isinstance(key, str) and key.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        return len(keys)

    def clear(self) -> None:
        self._entries.clear()

    def sweep(self) -> int:
        """Удаляет просроченные записи, возвращает их количество"""
        now = self._clock()
        expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)


class CacheRegistry:
    """Кэши приложения: создаются при старте, очищаются при остановке"""

    def __init__(self, order_ttl: float, cart_ttl: float, product_ttl: float, max_size: int = 100):
        self.orders: TTLCache[str, object] = TTLCache("orders", order_ttl, max_size)
        self.carts: TTLCache[str, object] = TTLCache("carts", cart_ttl, max_size)
        self.products: TTLCache[str, object] = TTLCache("products", product_ttl, max_size)
        self._sweeper: Optional[asyncio.Task] = None

    def all(self) -> list:
        return [self.orders, self.carts, self.products]

    def sweep(self) -> int:
        return sum(cache.sweep() for cache in self.all())

    def start_sweeper(self, interval: float) -> None:
        if self._sweeper is None:
            self._sweeper = asyncio.create_task(self._sweep_loop(interval))
            logger.info(f"Фоновая очистка кэша запущена, интервал {interval}с")

    async def stop(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None
        for cache in self.all():
            cache.clear()
        logger.info("Кэши очищены")

    async def _sweep_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            removed = self.sweep()
            if removed:
                logger.info(f"Удалено {removed} просроченных записей кэша")
