"""Core domain logic for restroom facility monitoring.

This package contains the business logic and domain models,
isolated from the HTTP and storage adapters for easy testing and reasoning.
"""
