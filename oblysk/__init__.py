"""Oblysk — deliver text into the focused application on Windows, Linux and macOS."""
