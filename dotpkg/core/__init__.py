"""Core — models, configuration, detection and services."""
