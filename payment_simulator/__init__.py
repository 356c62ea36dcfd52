"""
Payment Simulator.

Mock M-Pesa STK push and bank transfer provider used to exercise payment
integrations without contacting a real provider.
"""

__version__ = "1.0.0"
