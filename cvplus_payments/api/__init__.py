"""HTTP surface: callable handlers and the Stripe webhook."""
