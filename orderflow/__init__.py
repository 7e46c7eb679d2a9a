"""
                Order Lifecycle Engine

Order lifecycle and real-time notification backend for a single-vendor
food-ordering app: carts, order creation, staff status changes and the
live dashboard feed.

Author: Khalil_Bannouri
Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
__author__ = "Khalil_Bannouri"
