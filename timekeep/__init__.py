"""Time tracking and billing service."""
