"""
Services module for SuperNanny Backend.

Contains business logic and external service integrations.
"""
