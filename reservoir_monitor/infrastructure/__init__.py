"""
Infrastructure layer: database, messaging and external services.
"""
