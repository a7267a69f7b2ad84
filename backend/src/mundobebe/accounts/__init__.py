"""User accounts: management, authentication flows and own-account actions."""
