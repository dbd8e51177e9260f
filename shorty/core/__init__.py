"""Core configuration, logging and cross-cutting helpers."""
