"""Competition registration, payment checkout, and receipts for Django."""
