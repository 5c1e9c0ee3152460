"""Agent implementations for the feedsync runtime."""

from .inventory import InventoryAgentResult, run_inventory_agent

__all__ = ["InventoryAgentResult", "run_inventory_agent"]
