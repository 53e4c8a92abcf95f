"""Concrete backend implementations.

Import engine modules lazily through ``registry.get_backend_class`` so optional
engines are only imported when selected.
"""
