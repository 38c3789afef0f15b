from typing import Optional


def order_list_prefix(user_id: str) -> str:
    return f"orders:{user_id}:"


def order_list_key(user_id: str, page: int, limit: int, status) -> str:
    return f"{order_list_prefix(user_id)}{page}:{limit}:{status or 'all'}"


def order_detail_key(order_id: str) -> str:
    return f"order:{order_id}"


def cart_key(user_id: str) -> str:
    return f"cart:{user_id}"


def invalidate_order(caches, user_id: str, order_id: Optional[str] = None) -> None:
    """Сбрасывает кэш списков заказов пользователя и, если передан, детали заказа"""
    if caches is None:
        return
    caches.orders.delete_prefix(order_list_prefix(user_id))
    if order_id:
        caches.orders.delete(order_detail_key(order_id))
