# apps/orders/signals.py
from django.dispatch import Signal

# Fired once per accepted shipping-status transition, after the row update
# has committed.
# kwargs: order_id, old_status, new_status, actor_id, actor_role,
#         actor_outlet_id, actor_name, outlet_id, outlet_name, deliveryman_id
order_status_changed = Signal()
