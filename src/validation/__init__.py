# src/validation/__init__.py - v1
