"""Core application components.

This module provides the foundational components for the DineCircle API:
- Supabase client management and bounded external calls
- Application settings and configuration
- Logging setup shared across domains
"""
