"""Core building blocks shared across booking-commons features."""
