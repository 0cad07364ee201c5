"""Reconcile cloud spoke gateways, and their HA siblings, against a network controller."""

__version__ = "0.1.0"
