"""Authentication, identity and the access-control gate."""
