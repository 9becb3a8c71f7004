"""TuneForge: fine-tuning job coordination service."""

__version__ = "1.0.0"
