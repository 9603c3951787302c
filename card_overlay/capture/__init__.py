"""Frame capture: sources, crop, throttle, encode and the producer thread."""
