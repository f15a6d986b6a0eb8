"""
Courier Assist

Deterministic decision core of a hands-free assistant for delivery couriers.
"""

__version__ = "0.1.0"
