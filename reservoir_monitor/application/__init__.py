"""
Application layer: service interfaces and orchestration.
"""
