#!/usr/bin/env python3
"""
Entry point for running statement_mapper as a module.

This allows running the package with: python -m statement_mapper
"""

from .main import main

if __name__ == "__main__":
    main()
