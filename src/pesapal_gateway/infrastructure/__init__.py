"""Infrastructure: HTTP execution, token cache and token encryption."""
