"""API tests for the voting service, run in-process over ASGI."""
