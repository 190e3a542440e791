"""AWS service adapters."""
