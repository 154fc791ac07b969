"""Ticket and sale records exposed over REST and GraphQL."""
