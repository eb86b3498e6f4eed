"""Store locator: nearest store by coordinates or ZIP code."""
