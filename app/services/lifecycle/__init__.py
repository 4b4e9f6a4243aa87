"""Shipment status machine and exception lifecycle."""
