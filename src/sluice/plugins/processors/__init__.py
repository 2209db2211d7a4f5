"""Built-in processors. Every module here is scanned by plugin discovery."""
