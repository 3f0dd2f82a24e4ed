# src/multilingual/__init__.py - v1
