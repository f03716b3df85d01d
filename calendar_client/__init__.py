"""Calendar-side client for the booking API: window cache and optimistic edits."""
