"""Business operations: login, session selection, credential lifecycle."""
