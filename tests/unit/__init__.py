"""Unit tests for the Carina client."""
