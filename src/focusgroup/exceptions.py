"""Centralized exceptions for the focusgroup application."""


class FocusGroupError(Exception):
    """Base exception for all focusgroup errors."""
