"""Shared PDF co-viewer: one admin drives the page, everyone else follows."""

__version__ = "0.1.0"
