"""Shared runtime pieces: settings, logging, errors and cancellation."""
