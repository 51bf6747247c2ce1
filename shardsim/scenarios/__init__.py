"""Scenario drivers for the network simulation."""
