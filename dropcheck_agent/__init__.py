"""Drop-domain spam checker backed by Wayback Machine snapshots."""
