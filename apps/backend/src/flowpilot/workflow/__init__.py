"""Workflow graph model, traversal, execution and storage."""
