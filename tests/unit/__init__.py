"""Unit tests for the voting service components."""
