"""Bridge MQTT → SQL con API de agregados."""

__version__ = "0.1.0"
