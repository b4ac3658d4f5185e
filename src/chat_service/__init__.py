"""Chat completion service: token-budgeted conversations with streamed completions."""

__version__ = "0.1.0"
