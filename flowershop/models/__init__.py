# flowershop/models/__init__.py
from .catalog import *           # Category, Flower
from .order import *             # Order, OrderItem
from .order_status_log import *  # OrderStatusLog
from .user import *              # User
from .review import *            # Review
