"""HTTP surface for the customer webhooks (server.app:app)."""
