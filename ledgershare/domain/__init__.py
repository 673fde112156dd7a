"""
Domain Layer

Pure business logic: entities, value objects, repository interfaces,
domain services, errors and events.
"""
