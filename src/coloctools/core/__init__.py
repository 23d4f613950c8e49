"""Core data structures: masks, masked pair iteration, accumulation, job descriptor."""
