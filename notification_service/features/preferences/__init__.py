"""User notification preferences and the delivery policy engine."""
