"""git invocation, credential protocol and config parsing."""
