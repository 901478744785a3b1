"""
Domain layer: entities, exceptions and pure alert rules.
"""
