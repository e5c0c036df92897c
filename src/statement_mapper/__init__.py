#!/usr/bin/env python3
"""
Statement Mapper - Column Mapping and Template Learning for Financial Statements

Main package for statement-mapper providing header matching, pattern
detection and per-provider template learning for uploaded pension, savings,
debt and investment statements.

Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "Statement Mapper Team"
__description__ = "Column Mapping and Template Learning for Financial Statements"
