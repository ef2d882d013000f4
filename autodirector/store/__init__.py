"""Durable storage for persisted recurring jobs."""
