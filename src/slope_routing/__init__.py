"""Slope Routing - slope-aware, personalized bicycle routing costs."""
