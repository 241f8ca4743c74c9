"""Pure kernel value objects: clock and workflow definitions."""
