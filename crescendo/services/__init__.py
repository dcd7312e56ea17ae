"""Services that run practice sessions."""
