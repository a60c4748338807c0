"""Ingestion layer.

Adapters that receive data from the charger outside the poll cycle and
turn it into store updates.
"""

__all__: list[str] = []
