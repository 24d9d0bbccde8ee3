"""Wire protocol: envelope framing, command packets, checksums and device timestamps."""
