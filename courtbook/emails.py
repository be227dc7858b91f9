def normalize_email(email: str) -> str:
    """Canonical form used for storing and looking up emails: trimmed, lowercase."""
    return email.strip().lower()
