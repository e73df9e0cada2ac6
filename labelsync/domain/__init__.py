"""Domain layer: entities, errors and pure rules with no infrastructure imports."""
