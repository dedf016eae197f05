"""Subcommand registrations."""
