"""Client-side synchronization of per-user notifications."""
