"""Remote backend clients."""
