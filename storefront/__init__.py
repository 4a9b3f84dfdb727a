"""
storefront — e-commerce backend with server-side pricing and PayFast payments.

    from storefront import cart      # Guest and customer carts
    from storefront import checkout  # Pricing -> discount -> totals graph
    from storefront import orders    # Atomic order creation
    from storefront import payments  # PayFast checkout, ITN, refunds
    from storefront.http import create_app

Prices, discounts and totals are always recomputed from stored data; nothing
a client sends about money is trusted.
"""

__version__ = "0.1.0"

__all__ = ("__version__",)
