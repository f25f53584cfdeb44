"""
API Routes
"""
from storefront.api.routes import auth, cart, orders

__all__ = ["auth", "cart", "orders"]
