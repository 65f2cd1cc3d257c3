"""Configuration, logging, error, request-parsing and reporting helpers for an SBOM and vulnerability compliance service."""

__version__ = "0.1.0"