"""
Infrastructure Layer
=====================

Technical adapters shared across modules:
- Database: async engine and session lifecycle
"""
