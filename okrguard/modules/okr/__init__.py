"""OKR module: objectives, key results and check-ins."""
