# src/images/__init__.py - v1
