"""Tests for the Carina client."""
