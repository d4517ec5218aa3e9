"""
x402 Order Facilitator

Lets a client pay for a real-world product order with an x402 payment:
priced challenge, EIP-3009 authorization, custodial collection and
fulfillment settlement.
"""

__version__ = "0.1.0"
