"""Web Push subscription registry."""
