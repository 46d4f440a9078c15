"""Registration, checkout orchestration, and receipts."""
