"""Services implementing rename/delete propagation."""
