"""Replenishment suggestion engine: transfer and purchase-order suggestions per product and sink location."""

__version__ = "0.3.0"
