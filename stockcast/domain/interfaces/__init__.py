"""Domain Interfaces (Ports):

Contracts (Abstract Base Classes) for the cache store, the prediction
backend and the user interface. Core services depend on these, never on
the concrete adapters.
"""
