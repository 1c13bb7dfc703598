"""Conversation core and provider gateways for the Infonex chat backend."""

__version__ = "1.0.0"
