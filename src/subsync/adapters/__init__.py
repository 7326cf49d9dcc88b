"""Infrastructure adapters for the vendor API and the subscription store."""
