"""DineCircle API package."""
