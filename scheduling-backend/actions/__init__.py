"""Booking and schedule-administration flows invoked by the HTTP API."""
