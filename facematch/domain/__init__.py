"""Domain layer: entities, value objects and interfaces."""
