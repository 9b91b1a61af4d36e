"""Shipping sync pipeline: delivery graph parsing, free-shipping inference and zone/rate upserts."""
