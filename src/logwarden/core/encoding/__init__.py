"""Wire encoding of entries for the remote collector."""
