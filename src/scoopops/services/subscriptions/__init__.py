"""Subscription lifecycle workflows."""
