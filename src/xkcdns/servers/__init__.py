"""DNS-facing side: query classification, reply building, and listeners."""
