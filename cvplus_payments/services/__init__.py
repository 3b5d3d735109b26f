"""Service layer: payments, webhooks, scheduling and meetings."""
