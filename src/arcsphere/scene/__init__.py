"""Particle layers, the organic motion field and scene modulation."""
