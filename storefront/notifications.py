from .schemas import Notification, Order, OrderStatus

NOTIFICATIONS = "notifications"

_TEMPLATES = {
    OrderStatus.CANCELLED: ("order_cancelled", "Order Cancelled", "Your order #{n} has been cancelled."),
    OrderStatus.CONFIRMED: ("order_confirmed", "Order Confirmed",
                            "Your order #{n} has been confirmed and is being processed."),
    OrderStatus.PROCESSING: ("order_processing", "Order Processing", "Your order #{n} is now being processed."),
    OrderStatus.SHIPPED: ("order_shipped", "Order Shipped!", "Great news! Your order #{n} has been shipped."),
    OrderStatus.DELIVERED: ("order_delivered", "Order Delivered!",
                            "Your order #{n} has been delivered. Thank you for shopping with us!"),
}


def order_status_notification(order: Order) -> Notification:
    """In-app notification telling the order's owner about its current status."""
    status = OrderStatus(order.status)
    kind, title, message = _TEMPLATES.get(
        status,
        ("order_update", "Order Updated", "Your order #{n} status has been updated to " + status.value + "."),
    )
    return Notification(
        user_id=order.user_id,
        type=kind,
        title=title,
        message=message.format(n=order.order_number),
        order_id=order.id,
    )
