"""
Shop Services Package
Order lifecycle, cart, payment gateway and media handling.
Modules are imported directly (e.g. `from apps.shop.services.orders import ...`)
so models can use the helpers in `utils` without import cycles.
"""
