"""Core Application Layer: Orchestrates use cases and application logic.

Connects the domain layer with the infrastructure layer through interfaces.
Contains the fetch orchestrator, stock service, prefetch scheduler and the
command handler.
"""
