"""Services Layer — application logic behind the routes."""
