"""
Feature modules for the Chatflow session core.

Each module is self-contained with its own:
- interfaces.py: Protocol definitions for the module's collaborators
- models.py: Pydantic models for data transfer
- exceptions.py: Module-specific exceptions
- implementation modules (engine, guard, bus, service, store)

Modules communicate through interfaces, not concrete implementations.
"""
