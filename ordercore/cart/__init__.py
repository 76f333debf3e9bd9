"""
Cart — snapshot maintenance before checkout.

    from ordercore.cart import CartService

    carts = CartService(store, settings)
    await carts.add_item(user, product_id, variant_id)
    await carts.change_quantity(user, line_id, +1)
"""

from ordercore.cart._service import CartService

__all__ = ("CartService",)
