"""Campus events service: scheduling, registration and QR check-in."""

__version__ = "0.1.0"
