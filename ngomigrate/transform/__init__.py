"""Row -> organization and contact-user transformation."""
