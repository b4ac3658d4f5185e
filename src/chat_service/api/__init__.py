"""HTTP transport for the chat completion service."""
