# src/storage/__init__.py - v1
