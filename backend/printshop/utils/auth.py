def normalize_email(email: str) -> str:
    """Lower-case and trim ``email`` so token subjects match stored addresses."""
    return email.strip().lower()
