"""
Shop signals
Order lifecycle events consumed by the messaging app
"""

from django.dispatch import Signal

# Sent after an order's status has actually changed and been saved.
# kwargs: order, old_status, new_status, was_paid
order_status_changed = Signal()

# Sent after a new order has been created.
# kwargs: order
order_placed = Signal()
