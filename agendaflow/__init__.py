"""Availability and appointment booking engine."""
