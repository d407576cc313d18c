#!/usr/bin/env python3
"""Constants for sync server listener binding.

A listener restarted after a port change can briefly find the address
still held by the previous socket. Binding is retried a few times with a
short exponential backoff before giving up.
"""

# Number of bind attempts before giving up.
BIND_ATTEMPTS: int = 3

# Initial delay between bind attempts in seconds.
BIND_INITIAL_WAIT: float = 0.1

# Maximum delay between bind attempts in seconds.
BIND_MAX_WAIT: float = 1.0

# Base of the exponential backoff in seconds (delay = multiplier * 2^attempt).
BIND_WAIT_MULTIPLIER: float = 0.1
