"""ASGI request pipeline: handler, negotiation, errors, sending."""
