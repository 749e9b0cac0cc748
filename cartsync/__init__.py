"""Cart synchronization: remote cart service first, local store as fallback."""
