"""View layer: events, projection, domain managers and the view controller."""
