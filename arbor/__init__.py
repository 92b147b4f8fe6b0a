"""Arbor: business-event automation engine for tree-service operations."""
