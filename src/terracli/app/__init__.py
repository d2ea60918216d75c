"""Application layer: the components a command invocation coordinates."""
