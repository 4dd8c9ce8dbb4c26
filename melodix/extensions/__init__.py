"""
Extensions package
Registry of installed add-ons
"""

from .registry import Extension, ExtensionType, ExtensionRegistry, default_extensions, EXTENSIONS_KEY

__all__ = [
    'Extension',
    'ExtensionType',
    'ExtensionRegistry',
    'default_extensions',
    'EXTENSIONS_KEY',
]
