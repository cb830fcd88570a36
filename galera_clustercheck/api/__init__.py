"""HTTP surface of the cluster check."""
