"""Web framework integration for inbound IPN requests."""
