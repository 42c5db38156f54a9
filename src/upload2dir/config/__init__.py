"""
Configuration management for the upload2dir gateway.

Contains the pydantic settings model and the helpers that build it once at
startup and fail fast on invalid values.
"""
