"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the application to the outside world (the prediction backend, the
on-disk cache, the console) by implementing the interfaces defined in the
domain layer.
"""
